from datetime import datetime
from pytz import timezone
import logging.config
import logging
import os
import re
from logging import Logger


debug_mode = os.getenv("LOG_LEVEL", "info").lower() == "debug"
loglevel = logging.DEBUG if debug_mode else logging.INFO

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_ANSI_RESET = "\033[0m"
_ANSI_COLORS: dict[str, str] = {
    "cyan": "\033[36m",
    "green": "\033[32m",
    "yellow": "\033[33m",
    "red": "\033[31m",
    "magenta": "\033[35m",
    "blue": "\033[34m",
    "white": "\033[37m",
}

_LEVEL_PREFIX = {
    logging.CRITICAL: "⛔ ",
    logging.ERROR: "⛔ ",
    logging.WARNING: "⚠️ ",
}

# group 1 is kept, the secret after it is masked
_SECRET_PATTERNS = [
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"(['\"]?api[-_]key['\"]?\s*[:=]\s*['\"]?)[^'\",\s}]+", re.IGNORECASE),
    re.compile(r"()xox[abpr]-[A-Za-z0-9-]+"),
]


def redact_secrets(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda match: f"{match.group(1)}***", text)
    return text


class SecretRedactionFilter(logging.Filter):
    """Masks bearer tokens, api keys and Slack tokens before any handler sees the record."""

    def filter(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            return True
        redacted = redact_secrets(message)
        if redacted != message:
            record.msg, record.args = redacted, ()
        return True


class BridgeFormatter(logging.Formatter):
    """Timestamps in TIMEZONE, a marker in front of warnings and errors, and optional ANSI color.

    Color is only applied when ``use_color`` is set and the record carries a
    ``color`` attribute (see ColorLogger).
    """

    def __init__(self, tz_name: str, use_color: bool = False, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)
        self.use_color = use_color

    def formatTime(self, record, datefmt=None):
        dt = datetime.fromtimestamp(record.created, self.tz)
        return dt.strftime(datefmt) if datefmt else dt.isoformat()

    def format(self, record):
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            # mismatched %-args, keep the raw template
            message = str(record.msg)
        record.msg = _LEVEL_PREFIX.get(record.levelno, "") + message
        record.args = ()

        line = super().format(record)
        ansi = _ANSI_COLORS.get(getattr(record, "color", None) or "") if self.use_color else None
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


class ColorLogger:
    """Logger wrapper whose methods accept ``color=<name>`` for the console output.

        logger.info("Uploaded %d vectors", count, color="green")
    """

    def __init__(self, logger: Logger):
        self._logger = logger

    def log(self, level: int, msg, *args, color: str | None = None, **kwargs):
        if color is not None:
            kwargs["extra"] = {**(kwargs.get("extra") or {}), "color": color}
        self._logger.log(level, msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self.log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self.log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self.log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self.log(logging.ERROR, msg, *args, **kwargs)

    def critical(self, msg, *args, **kwargs):
        self.log(logging.CRITICAL, msg, *args, **kwargs)

    def exception(self, msg, *args, **kwargs):
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, msg, *args, **kwargs)

    def __getattr__(self, name):
        # setLevel, handlers, isEnabledFor, ...
        return getattr(self._logger, name)


def setup_logging(log_to_file: bool | None = None) -> ColorLogger:
    """Configure root logging to stdout and, unless LOG_TO_FILE is false, ``<ROOT_DIR>/logs/app.log``.

    Returns:
        ColorLogger: The application logger.
    """
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    if log_to_file is None:
        log_to_file = os.getenv("LOG_TO_FILE", "true").lower() in ("true", "1", "yes")

    formatters = {
        name: {"()": BridgeFormatter, "format": LOG_FORMAT, "datefmt": LOG_DATEFMT, "tz_name": tz_name, "use_color": colored}
        for name, colored in (("plain", False), ("colored", True))
    }
    handlers: dict = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "colored",
            "stream": "ext://sys.stdout",
        },
    }
    if log_to_file:
        log_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "formatter": "plain",
            "filename": os.path.join(log_dir, "app.log"),
            "encoding": "utf-8",
        }
    for handler in handlers.values():
        handler.update(level=loglevel, filters=["redact"])

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"redact": {"()": SecretRedactionFilter}},
        "formatters": formatters,
        "handlers": handlers,
        "root": {"handlers": list(handlers), "level": loglevel},
    })

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug_mode else logging.WARNING)

    return ColorLogger(logging.getLogger("chunk_rag_bridge"))
