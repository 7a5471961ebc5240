"""Blob storage for uploaded function sources."""

from fragments.filestore.archive import tar_gz_to_zip, tar_gz_to_zip_bytes
from fragments.filestore.base import FileStore, SourceReader, SourceTarget, validate_blob_name
from fragments.filestore.local import LocalFileStore
from fragments.filestore.s3 import S3FileStore

__all__ = [
    "FileStore",
    "LocalFileStore",
    "S3FileStore",
    "SourceReader",
    "SourceTarget",
    "tar_gz_to_zip",
    "tar_gz_to_zip_bytes",
    "validate_blob_name",
]
