# delivery/config/logger.py

from delivery.config.settings import get_settings
from delivery.shared.logger import JohnWickLogger


def get_logger(name: str = None) -> JohnWickLogger:
    """
    Return the JohnWickLogger for ``name``, configured from settings.

    Loggers are cached per name by JohnWickLogger itself, so calling this
    repeatedly is cheap.
    """
    settings = get_settings()
    return JohnWickLogger(
        name=name or settings.app.app_name,
        log_file=settings.app.log_file or None,
        level=settings.app.log_level,
    )


# Re-exported for modules that only want the class
__all__ = ["JohnWickLogger", "get_logger"]
