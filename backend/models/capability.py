"""Result variants returned by optional external capabilities.

Every call into an embedding provider or language model is wrapped so the
caller receives exactly one of:

* ``Success(value)``: the capability answered and its output parsed.
* ``Unavailable(reason)``: disabled, unreachable, timed out or errored.
* ``Malformed(reason, raw)``: it answered, but not in the expected shape.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T


@dataclass(frozen=True)
class Unavailable:
    reason: str


@dataclass(frozen=True)
class Malformed:
    reason: str
    raw: str = ""


CapabilityResult = Union[Success[T], Unavailable, Malformed]
