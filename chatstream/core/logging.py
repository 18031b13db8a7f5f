import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# httpx logs each request at INFO.
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


def configure_logging(log_level: str) -> None:
    """Configure process-wide logging for applications embedding chatstream.

    Transport loggers stay at WARNING unless DEBUG is requested.
    """

    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)

    transport_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
    logging.getLogger("chatstream").setLevel(level)
