import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from chat_core.config.settings import ChatSettings
from chat_core.domain.exceptions import ConfigError


LOGGER_NAME = "chat_core"
LOG_FILE = "chat.log"

logger = logging.getLogger(LOGGER_NAME)


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact_content = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact_content:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logger(settings: ChatSettings) -> logging.Logger:
    """把 chat_core 日志写入 <log_dir>/chat.log，重复调用不会叠加 handler。"""

    logger.setLevel(logging.INFO)
    logger.propagate = False
    for handler in list(logger.handlers):
        if getattr(handler, "_chat_core_handler", False):
            logger.removeHandler(handler)
            handler.close()
    log_dir = Path(settings.log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / LOG_FILE, encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            code="LOG_SETUP_ERROR",
            message=f"Failed to open log file in {log_dir}: {e}",
            log_dir=str(log_dir),
        ) from e
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact_content=settings.log_redact_content))
    fh._chat_core_handler = True  # type: ignore[attr-defined]
    logger.addHandler(fh)
    return logger


def logging_ready() -> bool:
    """setup_logger 成功后才为 True；之前的错误只能打印到终端。"""

    return any(getattr(h, "_chat_core_handler", False) for h in logger.handlers)


def log_event(level: int, message: str, log_ctx: dict, **fields) -> None:
    payload = dict(log_ctx)
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})
