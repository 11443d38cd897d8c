import logging

import notifiers.logging

from commitstatus.config import SETTINGS, Settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure_logging(settings: Settings = SETTINGS) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=logging.INFO)
    logging.getLogger().setLevel(settings.OVERRIDE_LOGGING)
    logging.getLogger("sanic.root").setLevel(settings.OVERRIDE_LOGGING)


def get_log_handlers(logger, settings: Settings = SETTINGS):
    if settings.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": settings.TELEGRAM_TOKEN,
            "chat_id": settings.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]
