"""
Conditional matching of a (context, message) pair against a conditionals map.

    {"type": "chat"}                    message field equals "chat"
    {"@organization": "123"}            conversation field equals "123"
    {"topic": ["sales", "support"]}     any element matches
    {"text": re.compile(r"^hi", re.I)}  pattern search

Keys are tested in order and all must pass. Each key is resolved on the
message first, then (for "@" keys) on the context with the prefix stripped,
then on the context's meta map. A key that resolves nowhere fails the map.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Any, Mapping

from pydantic import BaseModel

log = logging.getLogger("chipchat.matcher")

_MISSING = object()


def _field(obj: Any, key: str) -> Any:
    """Data field `key` of a mapping, model or conversation view. Methods never match."""
    if obj is None:
        return None
    if isinstance(obj, Mapping):
        return obj.get(key)
    if isinstance(obj, BaseModel):
        if key in type(obj).model_fields:
            return getattr(obj, key)
        return (obj.model_extra or {}).get(key)
    if hasattr(obj, "keys") and hasattr(obj, "__getitem__"):
        return obj[key] if key in obj else None
    return None


def _resolve(c: Any, m: Any, key: str) -> Any:
    value = _field(m, key)
    if value is not None:
        return value
    if key.startswith("@"):
        value = _field(c, key[1:])
        if value is not None:
            return value
    meta = _field(c, "meta")
    if isinstance(meta, Mapping) and meta.get(key) is not None:
        return meta[key]
    return _MISSING


def matcher(value: Any, test: Any) -> bool:
    """Test one resolved value against one expected value."""
    if isinstance(test, bool):
        return isinstance(value, bool) and value is test
    if isinstance(test, (str, int, float)):
        if isinstance(value, bool):
            return False
        if not isinstance(value, (str, int, float)):
            # populated references (e.g. a cached organization) compare by id
            return _field(value, "id") == test
        return value == test
    if isinstance(test, (list, tuple, set, frozenset)):
        return any(matcher(value, t) for t in test)
    if isinstance(test, re.Pattern):
        return value is not None and test.search(str(value)) is not None
    log.debug("invalid matcher %s", type(test).__name__)
    return False


def match(c: Any, m: Any, conditionals: Mapping[str, Any] | None) -> bool:
    """True iff `conditionals` is empty or every key passes, left to right."""
    if not conditionals:
        return True

    def step(accumulator: bool, key: str) -> bool:
        if not accumulator:
            return False
        value = _resolve(c, m, key)
        return value is not _MISSING and matcher(value, conditionals[key])

    return functools.reduce(step, conditionals, True)
