"""Response envelopes wrapping every payload as ``{"message", "data", "count"}``."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    message: str
    data: T | None = None


class ListEnvelope(BaseModel, Generic[T]):
    message: str
    data: list[T]
    count: int

    @classmethod
    def of(cls, message: str, items: list) -> "ListEnvelope":
        return cls(message=message, data=items, count=len(items))
