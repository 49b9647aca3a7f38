"""Normalise the loosely-typed JSON stored on items and responses.

Survey data has accumulated several shapes over time, so every reader here
degrades to "no labels" instead of raising:

    options_json   {"choices": [...]}  |  [...]
    answer_json    {"choices": [...]}  |  [...]  |  {"value": <scalar>}

Strings are parsed as JSON first (older rows were stored as text).
"""

from __future__ import annotations

import json
from typing import Any, FrozenSet, List, Optional

OptionLabels = List[str]
SelectedLabels = FrozenSet[str]

_COMMENT_KEYS = ("comment", "text", "freeText", "answer", "value")


def parse_json_payload(value: Any) -> Any:
    """Return *value* as a dict/list, parsing JSON text; ``None`` when unusable."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return value
    if isinstance(value, (str, bytes)):
        if not value:
            return None
        try:
            return json.loads(value)
        except (ValueError, RecursionError):
            # deeply nested arrays exhaust the decoder
            return None
    return None


def _label(value: Any) -> str:
    return value if isinstance(value, str) else str(value)


def _choices(obj: Any) -> Optional[List[Any]]:
    if isinstance(obj, dict) and isinstance(obj.get("choices"), list):
        return obj["choices"]
    if isinstance(obj, list):
        return obj
    return None


def extract_option_labels(options_json: Any) -> OptionLabels:
    """Ordered option labels declared on an item, or ``[]``."""
    choices = _choices(parse_json_payload(options_json))
    if choices is None:
        return []
    return [_label(c) for c in choices if c is not None]


def extract_selected_labels(answer_json: Any) -> SelectedLabels:
    """Labels a participant selected; duplicates collapse to one."""
    obj = parse_json_payload(answer_json)
    choices = _choices(obj)
    if choices is not None:
        return frozenset(_label(c) for c in choices if c is not None)
    if isinstance(obj, dict):
        value = obj.get("value")
        if isinstance(value, list):
            return frozenset(_label(v) for v in value if v is not None)
        if value is not None and value != "" and not isinstance(value, dict):
            return frozenset([_label(value)])
    return frozenset()


def extract_comment(answer_json: Any) -> Optional[str]:
    """Free-text comment carried by an answer, or ``None``."""
    if isinstance(answer_json, str):
        obj = parse_json_payload(answer_json)
        if obj is None:
            # Plain text answers are not JSON at all
            text = answer_json.strip()
            return text or None
    else:
        obj = parse_json_payload(answer_json)
    if isinstance(obj, str):
        text = obj.strip()
        return text or None
    if isinstance(obj, dict):
        for key in _COMMENT_KEYS:
            value = obj.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


def is_non_essential_label(label: str, marker: str) -> bool:
    return marker.lower() in label.lower()
