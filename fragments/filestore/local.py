"""Local disk file store with a built-in upload receiver.

Uploads arrive over HTTP PUT at ``http://<host>:<port>/<token>``.  The
receiver is a small FastAPI app served by uvicorn on an ephemeral port in a
daemon thread until ``shutdown()``.  A body is streamed into a temporary
file and renamed to ``upload_dir/<token>`` only once it has arrived in
full, so an interrupted upload never becomes persistable.  ``persist``
moves staged uploads to ``source_dir``.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, BinaryIO

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.requests import ClientDisconnect

from fragments.core.context import Context
from fragments.errors import BackendError, NotFoundError, ValidationError
from fragments.filestore.base import validate_blob_name

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT_SECONDS = 10.0


def create_upload_app(upload_dir: Path) -> FastAPI:
    """Build the app that receives ``PUT /<token>`` into *upload_dir*."""
    app = FastAPI(title="fragments-uploads", docs_url=None, redoc_url=None, openapi_url=None)

    @app.put("/{token:path}")
    async def receive_upload(token: str, request: Request) -> Response:
        try:
            validate_blob_name(token)
        except ValidationError as exc:
            return PlainTextResponse(str(exc), status_code=400)

        fd, partial = tempfile.mkstemp(dir=upload_dir, prefix=f".{token}.", suffix=".part")
        committed = False
        try:
            with os.fdopen(fd, "wb") as fh:
                async for chunk in request.stream():
                    fh.write(chunk)
            os.replace(partial, upload_dir / token)
            committed = True
        except ClientDisconnect:
            logger.warning("local filestore: upload %s interrupted", token)
            return PlainTextResponse("upload interrupted", status_code=400)
        except OSError as exc:
            logger.warning("local filestore: could not save upload %s: %s", token, exc)
            return PlainTextResponse("could not save uploaded file", status_code=500)
        finally:
            if not committed:
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(partial)
        logger.debug("local filestore: received upload %s", token)
        return Response(status_code=200)

    return app


class LocalFileStore:
    """Stores sources on the controller's disk.

    Parameters
    ----------
    upload_dir:
        Staging directory for uploads that are not yet confirmed.
    source_dir:
        Permanent directory for confirmed sources.
    host:
        Interface the upload receiver binds to.
    """

    def __init__(self, upload_dir: Path | str, source_dir: Path | str, host: str = "127.0.0.1") -> None:
        if not upload_dir:
            raise ValidationError("upload directory not set")
        if not source_dir:
            raise ValidationError("source directory not set")
        self.upload_dir = Path(upload_dir)
        self.source_dir = Path(source_dir)
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            self.source_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BackendError("could not create file store directories") from exc

        config = uvicorn.Config(
            create_upload_app(self.upload_dir),
            host=host,
            port=0,
            lifespan="off",
            access_log=False,
            log_config=None,
        )
        self._server = uvicorn.Server(config)
        self._thread = threading.Thread(
            target=self._server.run, name="fragments-uploads", daemon=True
        )
        self._thread.start()
        self.address = self._wait_started()
        logger.info("local filestore: accepting uploads on http://%s/", self.address)

    def _wait_started(self) -> str:
        deadline = time.monotonic() + STARTUP_TIMEOUT_SECONDS
        while not self._server.started:
            if not self._thread.is_alive() or time.monotonic() > deadline:
                self._server.should_exit = True
                raise BackendError("could not start upload receiver")
            time.sleep(0.01)
        bound_host, port = self._server.servers[0].sockets[0].getsockname()[:2]
        return f"{bound_host}:{port}"

    def new_upload_url(self, name: str) -> str:
        return f"http://{self.address}/{validate_blob_name(name)}"

    def persist(self, ctx: Context, name: str) -> None:
        validate_blob_name(name)
        ctx.check()
        source = self.upload_dir / name
        target = self.source_dir / name
        if not source.exists() and target.exists():
            logger.info("local filestore: %s already persisted", name)
            return
        try:
            os.replace(source, target)
        except FileNotFoundError as exc:
            raise NotFoundError(name) from exc
        except OSError as exc:
            try:
                shutil.move(str(source), str(target))
            except OSError:
                raise BackendError(f"could not move {name} to source directory") from exc
        logger.info("local filestore: persisted %s", name)

    def get_file(self, ctx: Context, name: str) -> BinaryIO:
        validate_blob_name(name)
        ctx.check()
        try:
            return open(self.source_dir / name, "rb")
        except FileNotFoundError:
            raise NotFoundError(name) from None

    def shutdown(self) -> None:
        """Stop accepting uploads and wait for the listener to exit."""
        self._server.should_exit = True
        self._thread.join(timeout=5)
        logger.info("local filestore: stopped")

    def __enter__(self) -> LocalFileStore:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.shutdown()
