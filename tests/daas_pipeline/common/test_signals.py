"""Tests for shutdown signal handling."""

import asyncio
import os
import signal
from unittest.mock import Mock

from daas_pipeline.common.signals import setup_shutdown_signal_handlers


class TestShutdownSignals:
    async def test_first_and_second_signal(self):
        callback = Mock()
        forced = Mock()
        loop = asyncio.get_running_loop()
        setup_shutdown_signal_handlers(callback, on_second_signal=forced)
        try:
            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.sleep(0.05)
            callback.assert_called_once()
            forced.assert_not_called()

            os.kill(os.getpid(), signal.SIGTERM)
            await asyncio.sleep(0.05)
            forced.assert_called_once()
        finally:
            loop.remove_signal_handler(signal.SIGTERM)
            loop.remove_signal_handler(signal.SIGINT)
