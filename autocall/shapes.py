"""Known wrapper shapes of vendor collection responses.

The vendor returns collections in several encodings depending on the
endpoint: a bare JSON array, ``{"data": [...]}``, ``{"data": {"<id>": {...}}}``,
a named array such as ``{"operators": [...]}``, or (for outbound lines) an
object whose values are the records themselves. Each encoding is its own
shape class with its own normaliser; :func:`classify` is the only place that
inspects raw payloads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Union


Record = Dict[str, Any]


def _only_records(items: Iterable[Any]) -> List[Record]:
    return [item for item in items if isinstance(item, dict)]


@dataclass(frozen=True)
class BareList:
    items: Sequence[Any]

    def records(self) -> List[Record]:
        return _only_records(self.items)


@dataclass(frozen=True)
class DataList:
    items: Sequence[Any]

    def records(self) -> List[Record]:
        return _only_records(self.items)


@dataclass(frozen=True)
class KeyedData:
    entries: Mapping[str, Any]

    def records(self) -> List[Record]:
        return _only_records(self.entries.values())


@dataclass(frozen=True)
class NamedList:
    key: str
    items: Sequence[Any]

    def records(self) -> List[Record]:
        return _only_records(self.items)


@dataclass(frozen=True)
class KeyedObject:
    entries: Mapping[str, Any]

    def records(self) -> List[Record]:
        return _only_records(self.entries.values())


@dataclass(frozen=True)
class NoRecords:
    def records(self) -> List[Record]:
        return []


ResponseShape = Union[BareList, DataList, KeyedData, NamedList, KeyedObject, NoRecords]


def classify(
    payload: Any,
    *,
    collection_keys: Sequence[str] = (),
    keyed_top_level: bool = False,
) -> ResponseShape:
    """Identify which known shape ``payload`` has.

    ``collection_keys`` lists endpoint-specific array keys that take precedence
    over ``data``. ``keyed_top_level`` enables :class:`KeyedObject` for
    endpoints that return records keyed by id at the top level.
    """

    if isinstance(payload, list):
        return BareList(payload)
    if not isinstance(payload, dict):
        return NoRecords()

    for key in collection_keys:
        if isinstance(payload.get(key), list):
            return NamedList(key, payload[key])

    data = payload.get("data")
    if isinstance(data, list):
        return DataList(data)
    if isinstance(data, dict):
        return KeyedData(data)

    if isinstance(payload.get("items"), list):
        return NamedList("items", payload["items"])

    if keyed_top_level:
        return KeyedObject(payload)

    return NoRecords()


def as_records(
    payload: Any,
    *,
    collection_keys: Sequence[str] = (),
    keyed_top_level: bool = False,
) -> List[Record]:
    """Normalise any known collection encoding into an ordered list of records."""

    shape = classify(payload, collection_keys=collection_keys, keyed_top_level=keyed_top_level)
    return shape.records()


__all__ = [
    "BareList",
    "DataList",
    "KeyedData",
    "KeyedObject",
    "NamedList",
    "NoRecords",
    "Record",
    "ResponseShape",
    "as_records",
    "classify",
]
