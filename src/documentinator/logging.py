"""Logging setup for Documentinator.

Workspace, user and document identifiers are shortened in every log line
unless LOG_SENSITIVE is enabled. Canonical storage paths are cut down to
their filename since they embed two identifiers.

Questions, answers and document text are never logged.
"""

import logging
import os
import re

import colorlog

LOG_FORMAT = '%(log_color)s%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

# Third-party loggers held at WARNING
NOISY_LOGGERS = ('urllib3', 'requests', 'httpx', 'chromadb', 'PIL')

_UUID = r'[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}'
UUID_PATTERN = re.compile(_UUID)
STORAGE_PATH_PATTERN = re.compile(rf'(?:documents/)?{_UUID}/{_UUID}/([^\s/]+)')


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 'yes')


def anonymize_uuid(uuid: str) -> str:
    """Shorten an identifier to "a3f2..."."""
    if not uuid:
        return "none"
    return f"{uuid[:4]}..."


def anonymize_path(path: str) -> str:
    """Keep only the filename of a storage path, e.g. ".../report.pdf"."""
    if not path:
        return "none"
    return f".../{path.rsplit('/', 1)[-1]}"


def redact(text: str) -> str:
    """Redact storage paths first, then any remaining identifiers."""
    text = STORAGE_PATH_PATTERN.sub(lambda m: anonymize_path(m.group(0)), text)
    return UUID_PATTERN.sub(lambda m: anonymize_uuid(m.group(0)), text)


class PrivacyFilter(logging.Filter):
    """Redacts identifiers in the message and its string arguments.

    Counts, statuses, timings and error text pass through unchanged.
    """

    def __init__(self, sensitive_logging: bool = False):
        super().__init__()
        self.sensitive_logging = sensitive_logging

    def filter(self, record: logging.LogRecord) -> bool:
        if self.sensitive_logging:
            return True

        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)

        return True


def setup_logging(
    level: str = None,
    sensitive: bool = None,
    suppress_noisy: bool = True
) -> None:
    """Install a single colored, redacting handler on the root logger.

    Args:
        level: Log level name. Defaults to LOG_LEVEL or INFO.
        sensitive: Log full identifiers. Defaults to LOG_SENSITIVE or False.
        suppress_noisy: Hold NOISY_LOGGERS at WARNING.
    """
    level = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    if sensitive is None:
        sensitive = _env_flag('LOG_SENSITIVE')

    handler = colorlog.StreamHandler()
    handler.setFormatter(colorlog.ColoredFormatter(LOG_FORMAT, datefmt=DATE_FORMAT, log_colors=LOG_COLORS))
    handler.addFilter(PrivacyFilter(sensitive_logging=sensitive))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level, logging.INFO))

    if suppress_noisy:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, sensitive={sensitive}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger by name (usually __name__)."""
    return logging.getLogger(name)
