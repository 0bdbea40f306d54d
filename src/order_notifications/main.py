"""Process entry point: HTTP server and consumption loop in one event loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import TYPE_CHECKING

import uvicorn

from .bootstrap import build_service
from .config import Settings
from .exceptions import ConfigurationError
from .logging_config import configure_logging

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .bootstrap import Service

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class _Server(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to :func:`serve`."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


async def serve(service: Service, *, host: str = "0.0.0.0") -> int:
    """Run until a shutdown signal; the consumer drains before HTTP stops.

    Returns the process exit code.
    """
    settings = service.settings
    server = _Server(
        uvicorn.Config(
            service.app,
            host=host,
            port=settings.app_port,
            log_config=None,
            lifespan="off",
            timeout_keep_alive=settings.profile.http_keepalive_seconds,
        )
    )

    event_loop = asyncio.get_running_loop()

    def _on_signal(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}; draining")
        service.loop.request_shutdown()

    for sig in _SHUTDOWN_SIGNALS:
        with contextlib.suppress(NotImplementedError):
            event_loop.add_signal_handler(sig, _on_signal, sig)

    http = asyncio.create_task(server.serve(), name="http-server")
    consumer = asyncio.create_task(service.loop.run(), name="consumption-loop")
    exit_code = 0
    try:
        await asyncio.wait({http, consumer}, return_when=asyncio.FIRST_COMPLETED)
        if http.done() and not consumer.done():
            logger.error("HTTP server stopped unexpectedly; draining consumer")
            service.loop.request_shutdown()
            exit_code = 1
        try:
            await consumer
        except Exception:
            logger.exception("Consumption loop failed")
            exit_code = 1
    finally:
        server.should_exit = True
        await asyncio.gather(http, return_exceptions=True)
        await service.close()
        for sig in _SHUTDOWN_SIGNALS:
            with contextlib.suppress(NotImplementedError):
                event_loop.remove_signal_handler(sig)
    logger.info(f"Shut down with exit code {exit_code}")
    return exit_code


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        configure_logging("INFO")
        for variable, messages in e.errors.items():
            logger.error(f"Invalid configuration {variable}: {'; '.join(messages)}")
        return 1

    configure_logging(settings.effective_log_level, json_output=settings.json_logs)
    logger.info(
        f"Starting order-notifications in {settings.app_env} mode "
        f"on port {settings.app_port}"
    )
    return asyncio.run(serve(build_service(settings)))
