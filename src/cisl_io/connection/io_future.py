"""Futures that refuse to block the RabbitMQ I/O thread."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, Optional, TypeVar

from cisl_io.errors import IoThreadBlockedError

T = TypeVar("T")


class IoThreadFuture(Future[T]):
    """Future settled by the I/O thread.

    Handlers run on that thread, so a pending result can never arrive while
    one of them waits on it. ``result()`` and ``exception()`` raise
    :class:`IoThreadBlockedError` there instead of hanging; chain with
    ``add_done_callback`` to use the result from a handler.
    """

    def __init__(self, in_io_thread: Callable[[], bool]) -> None:
        super().__init__()
        self._in_io_thread = in_io_thread

    def result(self, timeout: Optional[float] = None) -> T:
        self._refuse_io_thread_wait()
        return super().result(timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        self._refuse_io_thread_wait()
        return super().exception(timeout)

    def _refuse_io_thread_wait(self) -> None:
        if not self.done() and self._in_io_thread():
            raise IoThreadBlockedError(
                "Cannot wait for a pending RabbitMQ result on the I/O thread; "
                "use add_done_callback instead."
            )
