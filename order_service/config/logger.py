import os
from functools import lru_cache

from order_service.config.settings import Settings
from order_service.shared.logger import JohnWickLogger


@lru_cache
def _settings() -> Settings:
    return Settings()


def get_logger(name: str = None) -> JohnWickLogger:
    """
    Return the JohnWickLogger for `name` (defaults to the app name), writing to the
    configured log file at the configured level.
    """
    settings = _settings()
    log_dir = os.path.dirname(settings.app.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return JohnWickLogger(
        name=name or settings.app.app_name,
        log_file=settings.app.log_file,
        level=settings.app.log_level,
    )
