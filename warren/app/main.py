import asyncio
import importlib
import signal
from typing import Any

from loguru import logger

from warren.app.application.application import Application
from warren.app.config.settings import Settings
from warren.app.core import SERVICE_NAME


def _log(event: str, **kwargs: Any) -> None:
    logger.bind(service_name=SERVICE_NAME, event=event, **kwargs).info("")


def load_application(target: str) -> Application:
    """Import an Application from a "package.module:attribute" target."""
    module_name, sep, attribute = target.partition(":")
    if not sep or not module_name or not attribute:
        raise ValueError(f"APP_TARGET must look like 'package.module:attribute', got {target!r}")
    module = importlib.import_module(module_name)
    application = getattr(module, attribute)
    if not isinstance(application, Application):
        raise TypeError(f"{target} is not a warren Application")
    return application


async def run_application(application: Application) -> None:
    shutdown = asyncio.Event()

    def request_shutdown() -> None:
        if not shutdown.is_set():
            _log("shutdown_signal")
            shutdown.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_shutdown)
        except NotImplementedError:
            pass

    await application.connect()
    _log("application_started", queues=list(application.queue_map))
    try:
        await shutdown.wait()
    finally:
        await application.close()
        _log("application_stopped")


def main() -> None:
    settings = Settings()
    try:
        application = load_application(settings.app_target)
        asyncio.run(run_application(application))
    except KeyboardInterrupt:
        _log("application_interrupted")
    except Exception as e:
        logger.exception("application failed: {}", e)
        raise


if __name__ == "__main__":
    main()
