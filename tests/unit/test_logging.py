import json
import logging
import sys

import pytest

from quarry.config.schema import LoggingConfig
from quarry.core.logging import ECSJsonFormatter, configure_logging, emit_metric, get_logger
from quarry.store.updates import apply_update


@pytest.fixture(autouse=True)
def _restore_quarry_root():
    root = logging.getLogger("quarry")
    handlers, level = list(root.handlers), root.level
    configured = getattr(root, "_quarry_configured", False)
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
    setattr(root, "_quarry_configured", configured)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(ECSJsonFormatter(service_name="quarry-test"))
        self.lines: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(json.loads(self.format(record)))


def test_ecs_log_output_to_file(tmp_path) -> None:
    log_file = tmp_path / "events.log"
    config = LoggingConfig(
        level="INFO",
        fmt="ecs_json",
        sink="file",
        file_path=str(log_file),
        service_name="quarry-test",
    )
    configure_logging(config, force=True)
    logger = get_logger("quarry.test.logging")
    logger.info(
        "duplicate write suppressed",
        extra={
            "collection": "bonusPayouts",
            "session_id": "session-1",
            "event_action": "idempotent_duplicate",
            "payload": {"existing_id": "abc", "empty": ""},
        },
    )

    record = json.loads(log_file.read_text(encoding="utf-8").strip())
    assert record["@timestamp"]
    assert record["service"]["name"] == "quarry-test"
    assert record["log"]["level"] == "info"
    assert record["event"]["action"] == "idempotent_duplicate"
    assert record["event"]["category"] == "database"
    assert record["quarry"] == {
        "collection": "bonusPayouts",
        "session": "session-1",
        "payload": {"existing_id": "abc"},
    }


def test_emit_metric_logs_metric_category(tmp_path) -> None:
    log_file = tmp_path / "metrics.log"
    config = LoggingConfig(level="DEBUG", sink="file", file_path=str(log_file), service_name="quarry-test")
    configure_logging(config, force=True)
    logger = get_logger("quarry.test.metrics", level="DEBUG")
    emit_metric(logger, name="documents_seeded", value=42, collection="users", payload={"seeded": True})

    record = json.loads(log_file.read_text(encoding="utf-8").strip())
    assert record["message"] == "metric:documents_seeded"
    assert record["event"]["category"] == "metric"
    assert record["quarry"]["collection"] == "users"
    assert record["quarry"]["payload"] == {"metric_name": "documents_seeded", "metric_value": 42.0, "seeded": True}


def test_formatter_includes_exception_details() -> None:
    formatter = ECSJsonFormatter()
    try:
        raise RuntimeError("rollback failed")
    except RuntimeError:
        record = logging.getLogger("quarry.test.errors").makeRecord(
            "quarry.test.errors", logging.ERROR, __file__, 1, "transaction rollback failed", (), sys.exc_info()
        )
    payload = json.loads(formatter.format(record))
    assert payload["error"] == {"type": "RuntimeError", "message": "rollback failed"}
    assert payload["service"]["name"] == "quarry"


def test_store_events_are_logged(database) -> None:
    handler = _ListHandler()
    root = logging.getLogger("quarry")
    session = database.start_session()
    root.addHandler(handler)
    try:
        session.start_transaction()
        payouts = database.collection("bonusPayouts")
        payouts.create({"type": "t", "sourceTxId": "s", "receiverUserId": "r"})
        payouts.create({"type": "t", "sourceTxId": "s", "receiverUserId": "r"})
        session.abort_transaction()
    finally:
        root.removeHandler(handler)

    actions = [line["event"].get("action") for line in handler.lines]
    assert actions == ["transaction_start", "idempotent_duplicate", "transaction_abort"]
    assert handler.lines[0]["quarry"]["session"] == session.session_id
    assert handler.lines[1]["quarry"]["collection"] == "bonusPayouts"


def test_module_loggers_follow_configured_sink(tmp_path) -> None:
    log_file = tmp_path / "store.log"
    configure_logging(LoggingConfig(level="INFO", sink="file", file_path=str(log_file)), force=True)
    doc = {"a": 1}
    apply_update(doc, {"$rename": {"a": "b"}})

    records = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
    assert doc == {"a": 1}
    assert [record["log"]["logger"] for record in records] == ["quarry.store.updates"]
    assert records[0]["log"]["level"] == "warning"


def test_configured_level_applies_to_store_loggers(tmp_path) -> None:
    log_file = tmp_path / "quiet.log"
    configure_logging(LoggingConfig(level="ERROR", sink="file", file_path=str(log_file)), force=True)
    apply_update({}, {"$rename": {"a": "b"}})
    assert log_file.read_text(encoding="utf-8") == ""


def test_get_logger_rejects_foreign_names() -> None:
    with pytest.raises(ValueError, match="under 'quarry'"):
        get_logger("uvicorn.error")
