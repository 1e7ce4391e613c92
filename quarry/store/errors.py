"""Exceptions raised by the embedded document store."""

from __future__ import annotations


class QuarryError(RuntimeError):
    pass


class UnknownCollectionError(QuarryError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown in-memory collection: {name}")
        self.name = name


class UnknownModelError(QuarryError):
    def __init__(self, name: str) -> None:
        super().__init__(f"unknown model: {name}")
        self.name = name


class UnsupportedStageError(QuarryError):
    def __init__(self, stage: str) -> None:
        super().__init__(f"unsupported aggregation stage: {stage}")
        self.stage = stage


class TransactionError(QuarryError):
    pass
