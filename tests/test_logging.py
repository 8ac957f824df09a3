from __future__ import annotations

import io
import json
import logging

import pytest

from yamlcfg.observability.logging import JsonFormatter, configure_logging, get_logger


def _record(**extra: object) -> logging.LogRecord:
    rec = logging.LogRecord("yamlcfg.test", logging.INFO, __file__, 1, "config_loaded", None, None)
    for k, v in extra.items():
        setattr(rec, k, v)
    return rec


def test_json_formatter_includes_extra_fields() -> None:
    payload = json.loads(JsonFormatter().format(_record(source="app.yaml", bytes=12)))

    assert payload["message"] == "config_loaded"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "yamlcfg.test"
    assert payload["source"] == "app.yaml"
    assert payload["bytes"] == 12
    assert "ts" in payload


def test_json_formatter_reprs_unserializable_values() -> None:
    payload = json.loads(JsonFormatter().format(_record(target=object)))
    assert payload["target"] == repr(object)


@pytest.mark.usefixtures("restore_root_logging")
def test_kv_logger_writes_json_lines() -> None:
    stream = io.StringIO()
    configure_logging(level="debug", stream=stream)

    get_logger("yamlcfg.test").warning("config_failed", stage="validating config", error="boom")

    line = stream.getvalue().strip().splitlines()[-1]
    payload = json.loads(line)
    assert payload["message"] == "config_failed"
    assert payload["stage"] == "validating config"
    assert payload["error"] == "boom"


@pytest.mark.usefixtures("restore_root_logging")
def test_configure_logging_replaces_handlers() -> None:
    configure_logging(stream=io.StringIO())
    configure_logging(stream=io.StringIO())

    assert len(logging.getLogger().handlers) == 1
    assert logging.getLogger().level == logging.WARNING
