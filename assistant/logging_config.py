import datetime
import logging
from pathlib import Path
from typing import Any, MutableMapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .settings import Settings, settings as default_settings


APP_LOGGER_NAME = "assistant"

_LOGGING_CONFIGURED = False


class LocalTimezoneFormatter(logging.Formatter):
    """
    Formatter that renders timestamps in a configured timezone.
    Falls back to the system local timezone when LOG_TIMEZONE is unset
    or names an unknown zone.
    """

    def __init__(self, *args, timezone_name: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._tzinfo = self._resolve_tzinfo(timezone_name)

    @staticmethod
    def _resolve_tzinfo(timezone_name: str | None) -> datetime.tzinfo:
        if timezone_name:
            try:
                return ZoneInfo(timezone_name)
            except ZoneInfoNotFoundError:
                pass
        return datetime.datetime.now().astimezone().tzinfo or datetime.timezone.utc

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        dt = datetime.datetime.fromtimestamp(record.created, tz=self._tzinfo)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="milliseconds")


class DailyFileHandler(logging.Handler):
    """
    Writes each day's records into <log_dir>/<prefix>-YYYY-MM-DD.log and
    keeps at most backup_count of those files.
    """

    def __init__(
        self,
        log_dir: Path,
        filename_prefix: str = APP_LOGGER_NAME,
        backup_count: int = 7,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__()
        self.log_dir = log_dir
        self.filename_prefix = filename_prefix
        self.backup_count = backup_count
        self.encoding = encoding
        self.terminator = "\n"
        self._current_date: datetime.date | None = None
        self._stream = None
        self._ensure_stream()

    def _file_path_for_date(self, day: datetime.date) -> Path:
        return self.log_dir / f"{self.filename_prefix}-{day.isoformat()}.log"

    def _cleanup_old_files(self) -> None:
        if self.backup_count <= 0:
            return
        prefix = f"{self.filename_prefix}-"
        candidates = sorted(
            p
            for p in self.log_dir.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.suffix == ".log"
        )
        for old in candidates[: max(0, len(candidates) - self.backup_count)]:
            try:
                old.unlink()
            except OSError:
                # Another worker may have rotated it already.
                pass

    def _ensure_stream(self) -> None:
        today = datetime.date.today()
        if self._current_date == today and self._stream:
            return

        self._current_date = today
        if self._stream:
            try:
                self._stream.close()
            except OSError:
                pass
            self._stream = None

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self._stream = open(self._file_path_for_date(today), "a", encoding=self.encoding)
        self._cleanup_old_files()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            msg = self.format(record)
            self._ensure_stream()
            if self._stream is None:
                return
            self._stream.write(msg + self.terminator)
            self._stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        try:
            if self._stream:
                try:
                    self._stream.close()
                except OSError:
                    pass
                self._stream = None
        finally:
            super().close()


class SessionLogAdapter(logging.LoggerAdapter):
    """
    Prefixes every record with the session's thread id so interleaved
    sessions can be told apart in the shared log.
    """

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[thread={self.extra['thread_id']}] {msg}", kwargs


def session_logger(thread_id: object) -> SessionLogAdapter:
    return SessionLogAdapter(logger, {"thread_id": str(thread_id)})


def setup_logging(config: Optional[Settings] = None) -> None:
    """
    Configure application logging once per process.

    Records from the "assistant" logger go to a daily file under
    LOG_DIR (assistant-YYYY-MM-DD.log); everything, uvicorn included,
    goes to the console through the root logger.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    config = config or default_settings
    log_dir = Path(config.log_dir)

    root_logger = logging.getLogger()
    app_logger = logging.getLogger(APP_LOGGER_NAME)

    level_value = getattr(logging, str(config.log_level).upper(), logging.INFO)
    if not isinstance(level_value, int):
        level_value = logging.INFO

    formatter = LocalTimezoneFormatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        timezone_name=config.log_timezone,
    )

    file_handler = DailyFileHandler(log_dir=log_dir, backup_count=7)
    file_handler.setFormatter(formatter)
    file_handler.addFilter(lambda record: record.name.startswith(APP_LOGGER_NAME))
    app_logger.setLevel(level_value)
    app_logger.propagate = True
    app_logger.addHandler(file_handler)

    root_logger.setLevel(level_value)
    has_console = any(
        isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
        for h in root_logger.handlers
    )
    if not has_console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    _LOGGING_CONFIGURED = True


logger = logging.getLogger(APP_LOGGER_NAME)


__all__ = [
    "APP_LOGGER_NAME",
    "DailyFileHandler",
    "LocalTimezoneFormatter",
    "SessionLogAdapter",
    "logger",
    "session_logger",
    "setup_logging",
]
