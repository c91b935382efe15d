# tests/test_logging.py
import json
import logging

from app.core.logging import JsonFormatter


def test_json_formatter_nests_extra_fields():
    record = logging.makeLogRecord(
        {"name": "app.services.wheel_service", "levelname": "WARNING", "msg": "spin rejected", "rule": "daily_limit"}
    )

    line = json.loads(JsonFormatter(service="loyalty-test").format(record))

    assert line["service"] == "loyalty-test"
    assert line["message"] == "spin rejected"
    assert line["extra"] == {"rule": "daily_limit"}
