import asyncio
import logging
import logging.handlers

from clipsync.config import settings
from clipsync.errors import BindError
from clipsync.resources import StaticResources
from clipsync.server import RelayServer
from clipsync.store import ClipboardStore


def setup_logging(cfg=settings):
    loglevel = cfg.LOG_LEVEL.upper()
    # main log to stdout
    logging.basicConfig(
        level=loglevel,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # separate logger for received messages
    diag_logger = logging.getLogger("clip_diag")
    handler = logging.handlers.RotatingFileHandler(
        cfg.DIAG_LOG, maxBytes=10 * 1024 * 1024, backupCount=3, encoding="utf-8"
    )
    handler.setFormatter(logging.Formatter("%(asctime)s | %(message)s"))
    diag_logger.setLevel(logging.INFO)
    diag_logger.addHandler(handler)


async def main():
    setup_logging()
    store = ClipboardStore(settings.HISTORY_FILE, max_items=settings.HISTORY_LIMIT)
    if settings.WEB_ROOT:
        resources = StaticResources.from_directory(settings.WEB_ROOT)
    else:
        resources = StaticResources.bundled()
    server = RelayServer.from_settings(settings, resources.resolve, on_message=store)
    await server.start()
    logging.info(f"Open {server.url} on your phone")
    await server.serve_forever()


def run():
    try:
        asyncio.run(main())
    except BindError as e:
        logging.critical(f"Cannot start: {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        logging.info("Stopped by user")


if __name__ == "__main__":
    run()
