import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


class JsonFormatter(logging.Formatter):
    """
    One JSON object per log line, so the hosting platform's log viewer can
    filter on level, logger and request id.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S,%f%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            payload["request_id"] = request_id

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload)


def setup_logging(level: int | str = logging.INFO) -> None:
    """
    Install a single stdout JSON handler on the root logger.

    Safe to call more than once; the previous handler is replaced rather than
    stacked, so app factories used in tests do not duplicate output.
    """
    root = logging.getLogger()
    root.setLevel(level)

    for handler in list(root.handlers):
        if getattr(handler, "_voucher_relay", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    handler._voucher_relay = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # uvicorn's access log duplicates the request-context middleware output.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
