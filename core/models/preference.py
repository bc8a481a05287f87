from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, model_validator


def _neutral_macros() -> dict[str, float]:
    return {"protein": 0.0, "carbs": 0.0, "fat": 0.0}


class PreferenceVector(BaseModel):
    """Learned taste profile of one user.

    Weights live in [-1, 1]; ``version`` is bumped by the store on every
    successful write and is only used for optimistic concurrency.
    """

    user_id: int
    cuisine_weights: dict[str, float] = {}
    ingredient_weights: dict[str, float] = {}
    difficulty_weights: dict[str, float] = {}
    macro_bias: dict[str, float] = Field(default_factory=_neutral_macros)
    preferred_time_min: int = Field(30, ge=0)
    interaction_count: int = Field(0, ge=0)
    version: int = 0


SignalKind = Literal["rated", "cooked", "favourited", "skipped"]


class InteractionSignal(BaseModel):
    kind: SignalKind
    rating: int | None = Field(None, ge=1, le=5)

    @model_validator(mode="after")
    def _rating_only_for_rated(self) -> "InteractionSignal":
        if self.kind == "rated" and self.rating is None:
            raise ValueError("a 'rated' signal needs a 1–5 rating")
        if self.kind != "rated" and self.rating is not None:
            raise ValueError(f"'{self.kind}' signal does not carry a rating")
        return self

    # convenience constructors
    @classmethod
    def rated(cls, stars: int) -> "InteractionSignal":
        return cls(kind="rated", rating=stars)

    @classmethod
    def cooked(cls) -> "InteractionSignal":
        return cls(kind="cooked")

    @classmethod
    def favourited(cls) -> "InteractionSignal":
        return cls(kind="favourited")

    @classmethod
    def skipped(cls) -> "InteractionSignal":
        return cls(kind="skipped")
