from __future__ import annotations

import json
import logging
import sys
import traceback
from datetime import datetime, timezone

from storefront.core.config import get_settings

_HANDLER_NAME = "storefront"


class JSONFormatter(logging.Formatter):
    def __init__(self, service_name: str):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_obj = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "service": self.service_name,
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
            "module": record.module,
            "line": record.lineno,
        }
        for key in ("order_id", "user_id"):
            if hasattr(record, key):
                log_obj[key] = getattr(record, key)
        if record.exc_info:
            log_obj["exception"] = "".join(traceback.format_exception(*record.exc_info))
        return json.dumps(log_obj)


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    use_json = settings.log_json if json_logs is None else json_logs

    root = logging.getLogger()
    root.setLevel(level_name)

    # Replace only our own handler so repeated calls (tests, reload) stay idempotent.
    for handler in list(root.handlers):
        if handler.get_name() == _HANDLER_NAME:
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    if use_json:
        handler.setFormatter(JSONFormatter(settings.app_name))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(handler)
