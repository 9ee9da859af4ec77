"""Explicit success/failure values for collaborator calls"""
from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    reason: str
    error: Optional[BaseException] = None


Result = Union[Ok[Any], Err]


SKIPPED = "skipped"


def is_ok(result: Result) -> bool:
    return isinstance(result, Ok)
