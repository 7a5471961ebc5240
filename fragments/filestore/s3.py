"""S3 file store.

Clients upload straight to ``upload_bucket`` through a presigned PUT URL.
Confirmed uploads are copied to ``source_bucket`` and removed from the
upload bucket; anything left behind in the upload bucket is garbage that a
bucket lifecycle rule may expire.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, BinaryIO

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from fragments.core.context import Context
from fragments.errors import BackendError, NotFoundError, ValidationError
from fragments.filestore.base import validate_blob_name

logger = logging.getLogger(__name__)

_MISSING_CODES = ("404", "NoSuchKey", "NotFound")


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3FileStore:
    """Sources stored in S3.

    Parameters
    ----------
    client:
        A boto3 S3 client.
    upload_bucket:
        Bucket that presigned uploads land in.
    source_bucket:
        Bucket that confirmed sources are kept in.
    upload_expiry:
        How long a presigned upload URL stays valid.
    """

    def __init__(
        self,
        client: Any,
        upload_bucket: str,
        source_bucket: str,
        upload_expiry: timedelta,
    ) -> None:
        if client is None:
            raise ValidationError("s3 client not set")
        if not upload_bucket:
            raise ValidationError("upload bucket not set")
        if not source_bucket:
            raise ValidationError("source bucket not set")
        if upload_expiry.total_seconds() <= 0:
            raise ValidationError("upload expiry not set")
        self.client = client
        self.upload_bucket = upload_bucket
        self.source_bucket = source_bucket
        self.upload_expiry = upload_expiry

    @classmethod
    def create(
        cls,
        *,
        upload_bucket: str,
        source_bucket: str,
        upload_expiry: timedelta,
        region: str = "",
    ) -> S3FileStore:
        """Build a store using boto3's standard credential chain."""
        session = boto3.session.Session(region_name=region or None)
        return cls(session.client("s3"), upload_bucket, source_bucket, upload_expiry)

    def new_upload_url(self, name: str) -> str:
        validate_blob_name(name)
        try:
            return self.client.generate_presigned_url(
                "put_object",
                Params={"Bucket": self.upload_bucket, "Key": name},
                ExpiresIn=int(self.upload_expiry.total_seconds()),
            )
        except (ClientError, BotoCoreError) as exc:
            raise BackendError("unable to presign upload url") from exc

    def persist(self, ctx: Context, name: str) -> None:
        validate_blob_name(name)
        ctx.check()
        try:
            self.client.copy_object(
                Bucket=self.source_bucket,
                Key=name,
                CopySource={"Bucket": self.upload_bucket, "Key": name},
            )
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES and self._persisted(name):
                logger.info("s3 filestore: %s already persisted", name)
                return
            raise BackendError(
                f"could not copy uploaded file {name} from bucket "
                f"{self.upload_bucket} to {self.source_bucket}"
            ) from exc

        ctx.check()
        try:
            self.client.delete_object(Bucket=self.upload_bucket, Key=name)
        except ClientError as exc:
            raise BackendError(f"could not delete uploaded source {name} after copy") from exc
        logger.info("s3 filestore: persisted %s", name)

    def _persisted(self, name: str) -> bool:
        try:
            self.client.head_object(Bucket=self.source_bucket, Key=name)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                return False
            raise BackendError(f"could not check source {name}") from exc
        return True

    def get_file(self, ctx: Context, name: str) -> BinaryIO:
        validate_blob_name(name)
        ctx.check()
        try:
            response = self.client.get_object(Bucket=self.source_bucket, Key=name)
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise NotFoundError(name) from exc
            raise BackendError(f"could not read source {name}") from exc
        return response["Body"]
