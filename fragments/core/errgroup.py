"""Structured fan-out: spawn workers, fail fast, await everyone.

``ErrGroup`` is the single concurrency primitive used by the apply CLI, the
state service and the reconciler.  Every worker receives the group's
derived context as its first argument.  The first worker to raise cancels
that context; ``wait()`` returns only after all workers have exited and
then re-raises the first exception.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from fragments.core.context import Context

logger = logging.getLogger(__name__)


class ErrGroup:
    """A group of worker threads sharing one cancellable context.

    Parameters
    ----------
    ctx:
        Parent context.  Cancelling it cancels the group.
    limit:
        Maximum number of workers running at once.  ``None`` gives every
        spawned worker its own thread.
    """

    def __init__(self, ctx: Context, *, limit: int | None = None) -> None:
        if limit is not None and limit < 1:
            raise ValueError("limit must be at least 1")
        self.context, self._cancel = ctx.with_cancel()
        self._limit = limit
        self._executor: ThreadPoolExecutor | None = None
        self._threads: list[threading.Thread] = []
        self._futures: list[Future] = []
        self._lock = threading.Lock()
        self._first_error: BaseException | None = None

    def go(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run ``fn(group_context, *args)`` in a worker."""
        if self._limit is None:
            thread = threading.Thread(target=self._run, args=(fn, args), daemon=True)
            self._threads.append(thread)
            thread.start()
            return
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self._limit, thread_name_prefix="errgroup"
            )
        self._futures.append(self._executor.submit(self._run, fn, args))

    def _run(self, fn: Callable[..., Any], args: tuple[Any, ...]) -> None:
        try:
            fn(self.context, *args)
        except BaseException as exc:
            with self._lock:
                if self._first_error is None:
                    self._first_error = exc
                    logger.debug("errgroup: first failure, cancelling peers: %s", exc)
            self._cancel()

    def wait(self) -> None:
        """Join every worker, then raise the first error if there was one."""
        for thread in self._threads:
            thread.join()
        for future in self._futures:
            future.result()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
        # The derived context is released once the group is done.
        self._cancel()
        if self._first_error is not None:
            raise self._first_error
