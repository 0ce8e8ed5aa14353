"""Signal handling for graceful broker shutdown."""

import asyncio
import logging
import signal
from collections.abc import Callable

logger = logging.getLogger(__name__)


def setup_shutdown_signal_handlers(
    callback: Callable[[], None],
    on_second_signal: Callable[[], None] | None = None,
) -> None:
    """Invoke ``callback`` on the first SIGTERM/SIGINT, ``on_second_signal`` on the next.

    First signal: the broker stops fetching and drains in-flight messages.
    Second signal: the caller forces shutdown (typically cancelling tasks).

    On Windows, where ``add_signal_handler`` is not supported, falls back to
    ``signal.signal``.
    """
    received = 0

    def handle(signum: int) -> None:
        nonlocal received
        received += 1
        name = signal.Signals(signum).name
        if received == 1:
            logger.info("Received signal, initiating graceful shutdown", extra={"operation": name})
            callback()
        elif on_second_signal is not None:
            logger.warning("Received second signal, forcing immediate shutdown", extra={"operation": name})
            on_second_signal()

    loop = asyncio.get_running_loop()
    try:
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, handle, sig)
    except NotImplementedError:
        def _handler(signum, frame):
            loop.call_soon_threadsafe(handle, signum)

        signal.signal(signal.SIGTERM, _handler)
        signal.signal(signal.SIGINT, _handler)


__all__ = ["setup_shutdown_signal_handlers"]
