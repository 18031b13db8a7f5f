import logging

import punq

from chatstream.core.logging import configure_logging
from chatstream.core.settings import Settings, get_settings
from chatstream.dependency_injection import build_container

logger = logging.getLogger(__name__)


def bootstrap(settings: Settings | None = None) -> punq.Container:
    """Configure logging and wire the service container for an embedding application."""
    settings = settings or get_settings()
    configure_logging(settings.effective_log_level)
    logger.info(
        "chatstream configured",
        extra={
            "app_env": settings.app_env,
            "chat_api_base_url": settings.chat_api_base_url,
            "conversation_api_base_url": settings.effective_conversation_api_base_url,
        },
    )
    return build_container(settings)
