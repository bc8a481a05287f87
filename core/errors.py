"""
core/errors.py
────────────────────────────────────────────────────────────────────────
Error taxonomy shared by the planner and the repositories.

* NotFoundError  – referenced recipe / plan / slot is missing
* ConflictError  – a preference row changed underneath a read-modify-write
* InternalError  – the backing store failed; detail goes to the log only
"""
from __future__ import annotations


class MealPlanError(Exception):
    """Base class for every error surfaced by the core."""


class NotFoundError(MealPlanError):
    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key


class ConflictError(MealPlanError):
    pass


class InternalError(MealPlanError):
    def __init__(self, message: str = "internal storage failure") -> None:
        super().__init__(message)
