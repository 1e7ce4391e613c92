"""Write results shaped like the ones a real driver returns."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(slots=True)
class UpdateResult:
    acknowledged: bool = True
    matched_count: int = 0
    modified_count: int = 0
    upserted_id: str | None = None
    upserted_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class DeleteResult:
    acknowledged: bool = True
    deleted_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
