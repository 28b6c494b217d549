import json
import logging

from secure_fedavg.utils import configure_logging, get_logger
from secure_fedavg.utils.logging import JsonFormatter


def _record(logger: logging.Logger, **extra) -> logging.LogRecord:
    return logger.makeRecord(logger.name, logging.WARNING, __file__, 1, "skip client %d", (2,), None, extra=extra)


def test_json_output_carries_context_fields() -> None:
    logger = get_logger("plain_aggregator")
    payload = json.loads(JsonFormatter().format(_record(logger, cycle=4, client_id=2, mode="plain")))
    assert payload["name"] == "secure_fedavg.plain_aggregator"
    assert payload["message"] == "skip client 2"
    assert (payload["cycle"], payload["client_id"], payload["mode"]) == (4, 2, "plain")


def test_json_output_omits_absent_context() -> None:
    payload = json.loads(JsonFormatter().format(_record(get_logger("coordinator"))))
    assert "cycle" not in payload
    assert payload["level"] == "WARNING"


def test_configure_logging_quiets_http_client(monkeypatch) -> None:
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    configure_logging("info")
    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
    configure_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
