"""
Logging setup for the ThingsString console.

Records go to:
1. the console
2. one log file per day under logs/, dated in the configured timezone
3. an in-memory session buffer the dashboard shows
"""

import logging
import os
from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from runtime.paths import get_logs_dir

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
SESSION_LOG_LIMIT = 1000
LOG_FILE_SUFFIX = "thingsstring"


class SessionLogHandler(logging.Handler):
    """Keeps the most recent records in shared_data['session_logs']."""

    def __init__(self, shared_data, limit=SESSION_LOG_LIMIT):
        super().__init__()
        self.shared_data = shared_data
        self.limit = int(limit)

    def emit(self, record):
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created).strftime("%H:%M:%S"),
                "level": record.levelname,
                # Drop the "<time> - <level> - " prefix added by the formatter.
                "message": self.format(record).split(" - ", 2)[-1],
            }
            with self.shared_data["log_lock"]:
                logs = self.shared_data.setdefault("session_logs", [])
                logs.append(entry)
                if len(logs) > self.limit:
                    self.shared_data["session_logs"] = logs[-self.limit:]
        except Exception:
            self.handleError(record)


class DateRoutedFileHandler(logging.Handler):
    """Writes each record to logs/YYYY-MM-DD_thingsstring.log for its own date."""

    def __init__(self, logs_dir, timezone_name, shared_data, *, encoding="utf-8"):
        super().__init__()
        self.logs_dir = logs_dir
        self.shared_data = shared_data
        self.encoding = encoding
        try:
            self.timezone = ZoneInfo(timezone_name)
        except (TypeError, ValueError, ZoneInfoNotFoundError):
            self.timezone = datetime.now().astimezone().tzinfo

        self._current_date = None
        self._stream = None

    def log_path_for(self, date_str):
        return os.path.join(self.logs_dir, f"{date_str}_{LOG_FILE_SUFFIX}.log")

    def _publish_path(self, path):
        lock = self.shared_data.get("log_lock")
        if lock is None:
            self.shared_data["log_file_path"] = path
            return
        with lock:
            self.shared_data["log_file_path"] = path

    def _switch_to(self, date_str):
        if date_str == self._current_date and self._stream is not None:
            return
        self._close_stream()
        path = self.log_path_for(date_str)
        self._stream = open(path, "a", encoding=self.encoding)
        self._current_date = date_str
        self._publish_path(path)

    def _close_stream(self):
        if self._stream is None:
            return
        try:
            self._stream.close()
        finally:
            self._stream = None

    def emit(self, record):
        try:
            date_str = datetime.fromtimestamp(record.created, tz=self.timezone).strftime("%Y-%m-%d")
            self._switch_to(date_str)
            self._stream.write(self.format(record) + "\n")
            self._stream.flush()
        except Exception:
            self.handleError(record)

    def close(self):
        try:
            self._close_stream()
        finally:
            super().close()


def setup_logging(config, shared_data, logs_dir=None):
    """
    Install console, file and session handlers on the root logger.

    Args:
        config: Runtime config with LOG_LEVEL and TIMEZONE_NAME
        shared_data: Shared dict holding session_logs and log_lock
        logs_dir: Override for the log directory (defaults to <repo>/logs)

    Returns:
        logging.Logger: The configured root logger
    """
    log_level = config.get("LOG_LEVEL", logging.INFO)
    logs_dir = logs_dir or get_logs_dir(__file__)
    os.makedirs(logs_dir, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler()
    file_handler = DateRoutedFileHandler(logs_dir, config.get("TIMEZONE_NAME"), shared_data, encoding="utf-8")
    session_handler = SessionLogHandler(shared_data)
    for handler in (console_handler, file_handler, session_handler):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    # Dash request logs are noise at INFO.
    logging.getLogger("werkzeug").setLevel(logging.ERROR)
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return root_logger
