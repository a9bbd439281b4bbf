import logging
import sys

# SDK loggers that emit one line per HTTP request at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "openai")


class ContextFormatter(logging.Formatter):
    """Formatter that tolerates records without run_id / stage (e.g. from libraries)."""
    def format(self, record):
        if not hasattr(record, 'run_id'):
            record.run_id = '-'
        if not hasattr(record, 'stage'):
            record.stage = '-'
        return super().format(record)


def configure_logging(level: int = logging.INFO) -> None:
    """Log to stderr so stdout stays reserved for command output."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(ContextFormatter(
        "%(asctime)s %(levelname)s %(name)s [run_id=%(run_id)s stage=%(stage)s] - %(message)s"
    ))
    logging.basicConfig(
        level=level,
        handlers=[handler],
        force=True,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)
