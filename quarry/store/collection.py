"""Named document collections and the write-side idempotency guard."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable

from quarry.core.logging import get_logger
from quarry.store.aggregation import run_pipeline
from quarry.store.cursor import Cursor
from quarry.store.filters import Filter, parse_filter
from quarry.store.instance import HydratedDocument
from quarry.store.paths import MISSING, get_path, set_path
from quarry.store.projection import Projection, apply_projection
from quarry.store.relations import depopulate_document, populate_document
from quarry.store.results import DeleteResult, UpdateResult
from quarry.store.updates import parse_update
from quarry.store.values import clone, generate_id, normalize, normalize_deep, utcnow

if TYPE_CHECKING:
    from quarry.store.database import Database


CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"


def _plain(doc: Any) -> dict[str, Any]:
    if isinstance(doc, HydratedDocument):
        return doc.to_object()
    if not isinstance(doc, dict):
        raise TypeError(f"document must be a dict, not {type(doc).__name__}")
    return clone(doc)


class Collection:
    """Ordered list of documents; every read and write works on copies."""

    def __init__(self, name: str, database: "Database", documents: list[dict[str, Any]] | None = None) -> None:
        self.name = name
        self.database = database
        self._documents: list[dict[str, Any]] = [_plain(doc) for doc in documents or []]
        self._lock = database.lock
        self.logger = get_logger("quarry.store.collection")

    @property
    def identity_field(self) -> str:
        return self.database.config.identity_field

    def __len__(self) -> int:
        return len(self._documents)

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return clone(self._documents)

    def replace_contents(self, documents: list[dict[str, Any]]) -> None:
        with self._lock:
            self._documents = clone(documents)

    def hydrate(self, doc: dict[str, Any]) -> HydratedDocument:
        return HydratedDocument(doc, self)

    def populate(self, doc: dict[str, Any], path: str, select: Projection | None = None) -> dict[str, Any]:
        return populate_document(
            doc,
            database=self.database,
            collection_name=self.name,
            path=path,
            select=select,
        )

    # Reads

    def filter_documents(self, filter: Any = None) -> list[dict[str, Any]]:
        parsed = parse_filter(filter)
        with self._lock:
            return [clone(doc) for doc in self._documents if parsed.matches(doc)]

    def find(self, filter: Any = None) -> Cursor:
        return Cursor(self, filter)

    def find_one(self, filter: Any = None, projection: Projection | None = None) -> HydratedDocument | None:
        parsed = parse_filter(filter)
        with self._lock:
            found = next((doc for doc in self._documents if parsed.matches(doc)), None)
            if found is None:
                return None
            result = clone(found)
        if projection:
            result = apply_projection(result, projection, identity_field=self.identity_field)
        return self.hydrate(result)

    def find_by_id(self, document_id: Any) -> HydratedDocument | None:
        if document_id is None:
            return None
        return self.find_one({self.identity_field: document_id})

    def count_documents(self, filter: Any = None) -> int:
        parsed = parse_filter(filter)
        with self._lock:
            return sum(1 for doc in self._documents if parsed.matches(doc))

    def aggregate(self, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
        with self._lock:
            working = clone(self._documents)
        return run_pipeline(working, pipeline, identity_field=self.identity_field)

    # Idempotency guard

    def find_duplicate(self, candidate: dict[str, Any]) -> dict[str, Any] | None:
        """Existing document sharing the candidate's composite idempotency key."""
        idempotency = self.database.config.idempotency
        if not idempotency.applies_to(self.name):
            return None
        key: list[Any] = []
        for field_name in idempotency.key_fields:
            value = get_path(candidate, field_name)
            if value is MISSING or value is None:
                return None
            key.append(normalize_deep(value))
        with self._lock:
            for doc in self._documents:
                existing = [normalize_deep(get_path(doc, field_name)) for field_name in idempotency.key_fields]
                if existing == key:
                    return doc
        return None

    def _log_duplicate(self, existing: dict[str, Any], operation: str) -> None:
        idempotency = self.database.config.idempotency
        self.logger.info(
            "duplicate write suppressed by idempotency key",
            extra={
                "collection": self.name,
                "event_action": "idempotent_duplicate",
                "event_outcome": "success",
                "payload": {
                    "operation": operation,
                    "existing_id": existing.get(self.identity_field),
                    "key": {name: get_path(existing, name) for name in idempotency.key_fields},
                },
            },
        )

    # Writes

    def _prepare_new(self, doc: dict[str, Any]) -> dict[str, Any]:
        identity = self.identity_field
        now = utcnow()
        if doc.get(identity) is None:
            alias = doc.get("id") if identity != "id" else None
            doc[identity] = normalize(alias) if alias is not None else generate_id()
        else:
            doc[identity] = normalize(doc[identity])
        if doc.get(CREATED_AT) is None:
            doc[CREATED_AT] = now
        if doc.get(UPDATED_AT) is None:
            doc[UPDATED_AT] = now
        return doc

    def insert_document(self, doc: Any, *, operation: str = "create") -> tuple[dict[str, Any], bool]:
        """Insert through the idempotency guard; returns (stored copy, created)."""
        candidate = self._prepare_new(_plain(doc))
        with self._lock:
            existing = self.find_duplicate(candidate)
            if existing is not None:
                self._log_duplicate(existing, operation)
                return clone(existing), False
            self._documents.append(candidate)
            return clone(candidate), True

    def create(self, doc: Any) -> HydratedDocument | list[HydratedDocument]:
        if isinstance(doc, (list, tuple)):
            return [self.hydrate(self.insert_document(item)[0]) for item in doc]
        stored, _ = self.insert_document(doc)
        return self.hydrate(stored)

    def update_one(self, filter: Any, update: Any, *, upsert: bool = False) -> UpdateResult:
        parsed = parse_filter(filter)
        operation = parse_update(update)
        with self._lock:
            for doc in self._documents:
                if parsed.matches(doc):
                    operation.apply(doc, inserting=False)
                    doc[UPDATED_AT] = utcnow()
                    return UpdateResult(matched_count=1, modified_count=1)
            if not upsert:
                return UpdateResult()
            return self._upsert(parsed, operation)

    def _upsert(self, parsed: Filter, operation: Any) -> UpdateResult:
        seed: dict[str, Any] = {}
        for path, value in parsed.equality_fields().items():
            set_path(seed, path, clone(value))
        seed = self._prepare_new(seed)
        operation.apply(seed, inserting=True)
        seed[UPDATED_AT] = utcnow()
        existing = self.find_duplicate(seed)
        if existing is not None:
            self._log_duplicate(existing, "upsert")
            return UpdateResult(
                matched_count=1,
                modified_count=0,
                upserted_id=existing.get(self.identity_field),
                upserted_count=0,
            )
        self._documents.append(seed)
        self.logger.debug(
            "document upserted",
            extra={
                "collection": self.name,
                "event_action": "upsert",
                "payload": {"id": seed[self.identity_field]},
            },
        )
        return UpdateResult(upserted_id=seed[self.identity_field], upserted_count=1)

    def update_many(self, filter: Any, update: Any) -> UpdateResult:
        parsed = parse_filter(filter)
        operation = parse_update(update)
        modified = 0
        with self._lock:
            for doc in self._documents:
                if parsed.matches(doc):
                    operation.apply(doc, inserting=False)
                    doc[UPDATED_AT] = utcnow()
                    modified += 1
        return UpdateResult(matched_count=modified, modified_count=modified)

    def delete_one(self, filter: Any) -> DeleteResult:
        parsed = parse_filter(filter)
        with self._lock:
            for index, doc in enumerate(self._documents):
                if parsed.matches(doc):
                    del self._documents[index]
                    return DeleteResult(deleted_count=1)
        return DeleteResult()

    def delete_many(self, filter: Any = None) -> DeleteResult:
        parsed = parse_filter(filter)
        with self._lock:
            kept = [doc for doc in self._documents if not parsed.matches(doc)]
            deleted = len(self._documents) - len(kept)
            self._documents = kept
        return DeleteResult(deleted_count=deleted)

    def find_one_and_update(
        self,
        filter: Any,
        update: Any,
        *,
        upsert: bool = False,
        new: bool = True,
    ) -> HydratedDocument | None:
        parsed = parse_filter(filter)
        operation = parse_update(update)
        with self._lock:
            for doc in self._documents:
                if parsed.matches(doc):
                    before = clone(doc)
                    operation.apply(doc, inserting=False)
                    doc[UPDATED_AT] = utcnow()
                    return self.hydrate(clone(doc) if new else before)
            if not upsert:
                return None
            result = self._upsert(parsed, operation)
            if not new and result.upserted_count:
                return None
            return self.find_by_id(result.upserted_id)

    def find_by_id_and_update(
        self,
        document_id: Any,
        update: Any,
        *,
        upsert: bool = False,
        new: bool = True,
    ) -> HydratedDocument | None:
        return self.find_one_and_update({self.identity_field: document_id}, update, upsert=upsert, new=new)

    def save_document(self, data: dict[str, Any], *, removed: Iterable[str] = ()) -> dict[str, Any]:
        """Write an instance back by identity, else insert via the guard.

        Fields are merged into the stored document so a projected read never
        drops unselected fields; ``removed`` names top-level keys deleted from
        the instance. Populated relations are written back as their identity.
        """
        payload = depopulate_document(clone(data), database=self.database, collection_name=self.name)
        identity = self.identity_field
        document_id = payload.get(identity)
        with self._lock:
            if document_id is not None:
                for index, doc in enumerate(self._documents):
                    if normalize(doc.get(identity)) == normalize(document_id):
                        merged = clone(doc)
                        merged.update(payload)
                        for key in removed:
                            if key not in (identity, CREATED_AT):
                                merged.pop(key, None)
                        merged[identity] = doc.get(identity)
                        merged[UPDATED_AT] = utcnow()
                        self._documents[index] = merged
                        return clone(merged)
            stored, _ = self.insert_document(payload, operation="save")
            return stored
