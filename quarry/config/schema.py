"""Dataclasses for top-level store config."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


DEFAULT_IDENTITY_FIELD = "_id"
DEFAULT_IDEMPOTENCY_KEY_FIELDS = ["type", "sourceTxId", "receiverUserId"]
DEFAULT_COLLECTIONS = [
    "users",
    "balances",
    "miningSessions",
    "settings",
    "commissionRules",
    "giftBoxCycles",
    "giftBoxParticipants",
    "transactions",
    "notifications",
    "walletAddresses",
    "levelHistories",
    "bonusPayouts",
]
DEFAULT_MODELS = {
    "User": "users",
    "Balance": "balances",
    "MiningSession": "miningSessions",
    "Settings": "settings",
    "CommissionRule": "commissionRules",
    "GiftBoxCycle": "giftBoxCycles",
    "GiftBoxParticipant": "giftBoxParticipants",
    "Transaction": "transactions",
    "Notification": "notifications",
    "WalletAddress": "walletAddresses",
    "LevelHistory": "levelHistories",
    "BonusPayout": "bonusPayouts",
}
DEFAULT_RELATIONS = {
    "balances": {"userId": "users"},
    "miningSessions": {"userId": "users"},
    "notifications": {"userId": "users"},
    "transactions": {"userId": "users"},
    "walletAddresses": {"userId": "users"},
    "giftBoxCycles": {"winnerUserId": "users"},
    "giftBoxParticipants": {"userId": "users", "cycleId": "giftBoxCycles"},
    "bonusPayouts": {"receiverUserId": "users"},
}


@dataclass(slots=True)
class IdempotencyConfig:
    enabled: bool = True
    key_fields: list[str] = field(default_factory=lambda: list(DEFAULT_IDEMPOTENCY_KEY_FIELDS))
    # Empty means every collection is guarded.
    collections: list[str] = field(default_factory=list)

    def applies_to(self, collection_name: str) -> bool:
        if not self.enabled or not self.key_fields:
            return False
        return not self.collections or collection_name in self.collections


@dataclass(slots=True)
class StoreConfig:
    identity_field: str = DEFAULT_IDENTITY_FIELD
    seed_fixtures: bool = True
    collections: list[str] = field(default_factory=lambda: list(DEFAULT_COLLECTIONS))
    models: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MODELS))
    relations: dict[str, dict[str, str]] = field(
        default_factory=lambda: {name: dict(fields) for name, fields in DEFAULT_RELATIONS.items()}
    )
    idempotency: IdempotencyConfig = field(default_factory=IdempotencyConfig)

    def relation_target(self, collection_name: str, path: str) -> str | None:
        return self.relations.get(collection_name, {}).get(path)


@dataclass(slots=True)
class LoggingConfig:
    level: str = "INFO"
    fmt: str = "ecs_json"
    sink: str = "stdout"
    file_path: str | None = None
    service_name: str = "quarry"


@dataclass(slots=True)
class AppConfig:
    environment: str
    store: StoreConfig
    logging: LoggingConfig


VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
VALID_LOG_FORMATS = {"json", "ecs_json"}
VALID_LOG_SINKS = {"stdout", "file"}


def _parse_bool_value(raw: Any, *, field_name: str, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        normalized = raw.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"'{field_name}' must be a boolean")


def _parse_name_list(raw: Any, *, field_name: str, default: list[str]) -> list[str]:
    source = default if raw is None else raw
    if not isinstance(source, list):
        raise ValueError(f"'{field_name}' must be a list")
    values: list[str] = []
    seen: set[str] = set()
    for item in source:
        normalized = str(item).strip()
        if not normalized:
            continue
        if " " in normalized:
            raise ValueError(f"'{field_name}' entries must not include spaces")
        if normalized in seen:
            continue
        seen.add(normalized)
        values.append(normalized)
    return values


def _parse_models(raw: Any, *, collections: list[str]) -> dict[str, str]:
    if raw is None:
        return {name: target for name, target in DEFAULT_MODELS.items() if target in collections}
    if not isinstance(raw, dict):
        raise ValueError("'store.models' must be an object")
    models: dict[str, str] = {}
    for model_name, collection_name in raw.items():
        name = str(model_name).strip()
        target = str(collection_name).strip()
        if not name or not target:
            raise ValueError("'store.models' entries require non-empty names")
        if target not in collections:
            raise ValueError(f"model '{name}' references unknown collection '{target}'")
        models[name] = target
    return models


def _parse_relations(raw: Any, *, collections: list[str]) -> dict[str, dict[str, str]]:
    if raw is None:
        return {
            source: dict(fields)
            for source, fields in DEFAULT_RELATIONS.items()
            if source in collections and all(target in collections for target in fields.values())
        }
    if not isinstance(raw, dict):
        raise ValueError("'store.relations' must be an object")
    relations: dict[str, dict[str, str]] = {}
    for source, fields in raw.items():
        source_name = str(source).strip()
        if source_name not in collections:
            raise ValueError(f"relation source '{source_name}' is not a configured collection")
        if not isinstance(fields, dict):
            raise ValueError(f"'store.relations.{source_name}' must be an object")
        parsed: dict[str, str] = {}
        for path, target in fields.items():
            # Accept both `userId: users` and `userId: {collection: users}`.
            if isinstance(target, dict):
                target = target.get("collection")
            target_name = str(target or "").strip()
            if target_name not in collections:
                raise ValueError(
                    f"relation '{source_name}.{path}' references unknown collection '{target_name}'"
                )
            parsed[str(path).strip()] = target_name
        relations[source_name] = parsed
    return relations


def parse_store_config(raw: Any) -> StoreConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("'store' must be an object")
    identity_field = str(raw.get("identity_field", DEFAULT_IDENTITY_FIELD)).strip()
    if not identity_field or "." in identity_field:
        raise ValueError("store identity_field must be a non-empty top-level field name")
    collections = _parse_name_list(
        raw.get("collections"),
        field_name="store.collections",
        default=DEFAULT_COLLECTIONS,
    )
    if not collections:
        raise ValueError("'store.collections' must contain at least one collection")

    idempotency_raw = raw.get("idempotency", {}) or {}
    if not isinstance(idempotency_raw, dict):
        raise ValueError("'store.idempotency' must be an object")
    idempotency_collections = _parse_name_list(
        idempotency_raw.get("collections"),
        field_name="store.idempotency.collections",
        default=[],
    )
    for name in idempotency_collections:
        if name not in collections:
            raise ValueError(f"idempotency collection '{name}' is not a configured collection")
    idempotency = IdempotencyConfig(
        enabled=_parse_bool_value(
            idempotency_raw.get("enabled"),
            field_name="store.idempotency.enabled",
            default=True,
        ),
        key_fields=_parse_name_list(
            idempotency_raw.get("key_fields"),
            field_name="store.idempotency.key_fields",
            default=DEFAULT_IDEMPOTENCY_KEY_FIELDS,
        ),
        collections=idempotency_collections,
    )

    return StoreConfig(
        identity_field=identity_field,
        seed_fixtures=_parse_bool_value(
            raw.get("seed_fixtures"),
            field_name="store.seed_fixtures",
            default=True,
        ),
        collections=collections,
        models=_parse_models(raw.get("models"), collections=collections),
        relations=_parse_relations(raw.get("relations"), collections=collections),
        idempotency=idempotency,
    )


def parse_logging_config(raw: Any) -> LoggingConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("'logging' must be an object")
    level = str(raw.get("level", "INFO")).upper()
    if level not in VALID_LOG_LEVELS:
        raise ValueError(f"invalid log level '{level}'")
    log_format = str(raw.get("format", "ecs_json"))
    if log_format not in VALID_LOG_FORMATS:
        raise ValueError(f"invalid log format '{log_format}'")
    sink = str(raw.get("sink", "stdout"))
    if sink not in VALID_LOG_SINKS:
        raise ValueError(f"invalid log sink '{sink}'")
    file_path = raw.get("file_path")
    if sink == "file" and not file_path:
        raise ValueError("logging sink 'file' requires logging.file_path")
    return LoggingConfig(
        level=level,
        fmt=log_format,
        sink=sink,
        file_path=str(file_path) if file_path else None,
        service_name=str(raw.get("service_name", "quarry")),
    )


def parse_config(data: dict[str, Any]) -> AppConfig:
    if not isinstance(data, dict):
        raise ValueError("config root must be an object")
    return AppConfig(
        environment=str(data.get("environment", "development")),
        store=parse_store_config(data.get("store")),
        logging=parse_logging_config(data.get("logging")),
    )
