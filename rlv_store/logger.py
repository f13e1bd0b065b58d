import logging
import json
import os
from pathlib import Path
import threading


ROOT_LOGGER_NAME = "rlv_store"

LOG_FIELDS = {
    "timestamp": "asctime",
    "level": "levelname",
    "logger": "name",
    "module": "module",
    "function": "funcName",
    "line": "lineno",
    "message": "message",
}


class SingletonLogger:
    """
    Configures the "rlv_store" logger tree once per process.

    Every module asks for a dotted child ("rlv_store.ordering.ledger", ...)
    and inherits the JSON handlers attached here.
    """
    _instance = None
    _lock = threading.Lock()
    _root = None

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super(SingletonLogger, cls).__new__(cls)
        return cls._instance

    def get_logger(self, name: str = ROOT_LOGGER_NAME) -> logging.Logger:
        if self._root is None:
            with self._lock:
                if self._root is None:
                    SingletonLogger._root = self._configure_root()

        if not name or name == ROOT_LOGGER_NAME:
            return self._root
        if not name.startswith(ROOT_LOGGER_NAME + "."):
            name = f"{ROOT_LOGGER_NAME}.{name}"
        return logging.getLogger(name)

    @staticmethod
    def _configure_root() -> logging.Logger:
        """
        rlv_store.log gets INFO and up, errors.log ERROR and up, the console
        everything. Both files are truncated when the process starts.
        """
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(logging.DEBUG)
        root.handlers.clear()

        formatter = JsonFormatter(LOG_FIELDS)
        logs_dir = Path(os.environ.get("LOG_DIR", "logs"))
        logs_dir.mkdir(parents=True, exist_ok=True)

        handlers = (
            (logging.FileHandler(logs_dir / "rlv_store.log", mode='w', encoding='utf-8'), logging.INFO),
            (logging.FileHandler(logs_dir / "errors.log", mode='w', encoding='utf-8'), logging.ERROR),
            (logging.StreamHandler(), logging.DEBUG),
        )
        for handler, level in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            root.addHandler(handler)

        return root


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    fmt_dict maps output keys to LogRecord attribute names; exception and
    stack text are appended under "exc_info" and "stack_info".
    """
    def __init__(self, fmt_dict: dict = None, time_format: str = "%Y-%m-%dT%H:%M:%S", msec_format: str = "%s.%03dZ"):
        super().__init__()
        self.fmt_dict = fmt_dict or {"message": "message"}
        self.default_time_format = time_format
        self.default_msec_format = msec_format

    def usesTime(self) -> bool:
        return "asctime" in self.fmt_dict.values()

    def format(self, record) -> str:
        record.message = record.getMessage()
        if self.usesTime():
            record.asctime = self.formatTime(record)

        payload = {key: getattr(record, attr) for key, attr in self.fmt_dict.items()}

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            payload["exc_info"] = record.exc_text
        if record.stack_info:
            payload["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(payload, default=str)


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Logger named `name` below "rlv_store", sharing its JSON handlers."""
    return SingletonLogger().get_logger(name)
