import logging

import notifiers.logging

from mergeguard import config

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def setup_logging(level: int) -> logging.Logger:
    logging.basicConfig(format=LOG_FORMAT, level=level)
    logging.getLogger().setLevel(level)
    logger = logging.getLogger("mergeguard")
    logger.setLevel(level)
    get_log_handlers(logger)
    return logger


def get_log_handlers(logger):
    if config.TELEGRAM_TOKEN is None:
        return []
    handler = notifiers.logging.NotificationHandler(
        "telegram",
        defaults={
            "token": config.TELEGRAM_TOKEN,
            "chat_id": config.TELEGRAM_CHAT_ID,
        },
    )
    handler.setLevel(logging.WARNING)
    logger.addHandler(handler)
    return [handler]
