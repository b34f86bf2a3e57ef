from __future__ import annotations

import json
import logging

from storefront.core.logging import JSONFormatter, configure_logging


def test_json_formatter_includes_context_fields():
    record = logging.LogRecord("storefront.orders", logging.INFO, __file__, 10, "order %s created", ("o1",), None)
    record.order_id = "o1"
    payload = json.loads(JSONFormatter("Storefront").format(record))
    assert payload["message"] == "order o1 created"
    assert payload["service"] == "Storefront"
    assert payload["level"] == "INFO"
    assert payload["order_id"] == "o1"
    assert payload["timestamp"].endswith("Z")


def test_configure_logging_is_idempotent():
    configure_logging("DEBUG", json_logs=True)
    configure_logging("WARNING", json_logs=False)
    root = logging.getLogger()
    ours = [h for h in root.handlers if h.get_name() == "storefront"]
    assert len(ours) == 1
    assert not isinstance(ours[0].formatter, JSONFormatter)
    assert root.level == logging.WARNING
