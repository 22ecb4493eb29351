"""Completion history codec.

Two persisted shapes exist for the set of completed periods:

- current: a JSON array of period keys, ``["2024-01-01", "2024-01-02"]``
- legacy: a JSON object whose ``true`` keys are completed periods,
  ``{"2024-01-01": true, "2024-01-02": false}``

Both are normalized into one canonical in-memory form (unique keys in first-seen
order). Encoding always emits the array form, so legacy objects are never
written back.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from pairplan.core.errors import MalformedCompletionRecordError


logger = logging.getLogger(__name__)


class ArrayRecord(BaseModel):
    """Current storage shape."""

    kind: Literal["array"] = "array"
    keys: list[str]


class LegacyMapRecord(BaseModel):
    """Legacy storage shape: period key to completion flag."""

    kind: Literal["legacy_map"] = "legacy_map"
    entries: dict[str, Any]


class CorruptRecord(BaseModel):
    """Anything the codec cannot interpret."""

    kind: Literal["corrupt"] = "corrupt"
    raw: Any
    reason: str


RawCompletionRecord = ArrayRecord | LegacyMapRecord | CorruptRecord


class DecodedRecord(BaseModel):
    """Result of decoding a stored history value."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    keys: list[str]
    source: Literal["array", "legacy_map", "corrupt"]
    error: MalformedCompletionRecordError | None = None

    @property
    def is_corrupt(self) -> bool:
        return self.error is not None

    def raise_for_error(self) -> None:
        """Raise the malformed-record condition, if any."""
        if self.error is not None:
            raise self.error


def _unique(keys: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(keys))


def classify(raw: Any) -> RawCompletionRecord:
    """Identify which storage shape a raw value has.

    Strings are parsed as JSON first; the parsed value is then classified.
    """
    if raw is None:
        return ArrayRecord(keys=[])

    value = raw
    if isinstance(raw, str | bytes):
        if not raw.strip():
            return ArrayRecord(keys=[])
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return CorruptRecord(raw=raw, reason=f"not valid JSON: {e}")

    if value is None:
        return ArrayRecord(keys=[])

    if isinstance(value, list):
        if all(isinstance(item, str) for item in value):
            return ArrayRecord(keys=value)
        return CorruptRecord(raw=raw, reason="array contains non-string entries")

    if isinstance(value, dict):
        if all(isinstance(key, str) for key in value):
            return LegacyMapRecord(entries=value)
        return CorruptRecord(raw=raw, reason="object has non-string keys")

    return CorruptRecord(raw=raw, reason=f"unsupported value of type {type(value).__name__}")


def decode(raw: Any) -> DecodedRecord:
    """Normalize a stored history value into canonical period keys.

    Never raises. A value that cannot be interpreted decodes to an empty
    history and the condition is reported on the result.
    """
    record = classify(raw)

    if isinstance(record, ArrayRecord):
        return DecodedRecord(keys=_unique(record.keys), source="array")

    if isinstance(record, LegacyMapRecord):
        completed = (key for key, flag in record.entries.items() if flag is True)
        return DecodedRecord(keys=_unique(completed), source="legacy_map")

    error = MalformedCompletionRecordError(record.raw, record.reason)
    logger.warning(
        "Malformed completion record treated as empty",
        extra={"raw_type": type(record.raw).__name__, "reason": record.reason},
    )
    return DecodedRecord(keys=[], source="corrupt", error=error)


def encode(keys: Iterable[str]) -> str:
    """Serialize period keys into the array storage form."""
    return json.dumps(_unique(keys))


def add_key(keys: list[str], key: str) -> list[str]:
    """Return a new history with ``key`` appended unless already present."""
    if key in keys:
        return list(keys)
    return [*keys, key]
