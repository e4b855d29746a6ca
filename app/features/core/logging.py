from .config import get_settings


def setup_logging():
    """
    Configure logging for the application.

    Console rendering in development, JSON in production; the choice can be
    forced with LOG_FORMAT=console|json.
    """
    from .structured_logging import configure_logging

    settings = get_settings()
    configure_logging(
        level=settings.LOG_LEVEL.upper(),
        format_type=settings.LOG_FORMAT,
        enable_json=settings.ENVIRONMENT.lower() == "production",
        log_file=settings.LOG_FILE,
    )
