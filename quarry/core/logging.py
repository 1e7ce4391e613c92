"""Structured ECS logging for store events."""

from __future__ import annotations

from datetime import UTC, datetime
import json
import logging
from pathlib import Path

from quarry.config.schema import LoggingConfig


def _strip_empty(value: object) -> object | None:
    if isinstance(value, dict):
        cleaned = {key: _strip_empty(item) for key, item in value.items()}
        return {key: item for key, item in cleaned.items() if item is not None} or None
    if isinstance(value, list):
        cleaned_list = [_strip_empty(item) for item in value]
        return [item for item in cleaned_list if item is not None] or None
    if value in ("", None):
        return None
    return value


class ECSJsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = "quarry") -> None:
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, UTC).isoformat(timespec="microseconds")
        payload: dict[str, object] = {
            "@timestamp": timestamp,
            "message": record.getMessage(),
            "log": {
                "level": record.levelname.lower(),
                "logger": record.name,
            },
            "service": {
                "name": getattr(record, "service_name", self.service_name),
            },
            "event": {
                "kind": "event",
                "category": getattr(record, "event_category", "database"),
                "action": getattr(record, "event_action", None),
                "type": getattr(record, "event_type", None),
                "outcome": getattr(record, "event_outcome", None),
            },
            "quarry": {
                "collection": getattr(record, "collection", None),
                "session": getattr(record, "session_id", None),
                "payload": getattr(record, "payload", None),
            },
        }
        if record.exc_info:
            payload["error"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
            }
        cleaned = _strip_empty(payload) or {}
        return json.dumps(cleaned, separators=(",", ":"), default=str)


def _sink_handler(config: LoggingConfig, formatter: logging.Formatter) -> logging.Handler:
    if config.sink == "file":
        file_path = config.file_path or "logs/quarry.log"
        log_file = Path(file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    return handler


def configure_logging(config: LoggingConfig, force: bool = False) -> None:
    root = logging.getLogger("quarry")
    if getattr(root, "_quarry_configured", False) and not force:
        return

    formatter = ECSJsonFormatter(service_name=config.service_name)
    root.setLevel(config.level)
    for existing in list(root.handlers):
        existing.close()
    root.handlers.clear()
    root.addHandler(_sink_handler(config, formatter))
    root.propagate = False
    setattr(root, "_quarry_configured", True)


def _install_fallback_sink(root: logging.Logger) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(ECSJsonFormatter())
    root.addHandler(handler)
    root.setLevel(logging.INFO)
    root.propagate = False


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Return a ``quarry.*`` logger that propagates to the ``quarry`` root.

    Until ``configure_logging`` runs, the root writes ECS JSON to stderr;
    configuring later swaps that sink for every logger handed out here.
    """
    if name != "quarry" and not name.startswith("quarry."):
        raise ValueError(f"logger name must live under 'quarry': {name}")
    root = logging.getLogger("quarry")
    if not root.handlers:
        _install_fallback_sink(root)
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(level)
    return logger


def emit_metric(
    logger: logging.Logger,
    *,
    name: str,
    value: float,
    collection: str | None = None,
    payload: dict[str, object] | None = None,
    level: str = "DEBUG",
) -> None:
    metric_name = name.strip() or "metric"
    metric_payload: dict[str, object] = {"metric_name": metric_name, "metric_value": float(value)}
    if payload:
        metric_payload.update(payload)
    logger.log(
        getattr(logging, level.upper(), logging.DEBUG),
        f"metric:{metric_name}",
        extra={
            "collection": collection,
            "event_action": metric_name,
            "event_category": "metric",
            "event_type": "info",
            "event_outcome": "success",
            "payload": metric_payload,
        },
    )
