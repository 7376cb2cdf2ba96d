from __future__ import annotations

from typing import Iterable


def coerce_optional_str(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def coerce_str_tuple(value: object) -> tuple[str, ...]:
    if not isinstance(value, (list, tuple, set)):
        return ()
    return tuple(str(item) for item in value if str(item).strip())


def coerce_int_tuple(value: object) -> tuple[int, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    return tuple(int(item) for item in value)


def coerce_mapping(value: object) -> dict[str, object] | None:
    if not isinstance(value, dict):
        return None
    return {str(key): item for key, item in value.items()}


def coerce_int(value: object, default: int = 0) -> int:
    if value is None or value == "":
        return default
    return int(value)


def normalize_ids(items: Iterable[object] | None) -> tuple[str, ...]:
    if not items:
        return ()
    deduped: list[str] = []
    for item in items:
        text = str(item).strip()
        if text and text not in deduped:
            deduped.append(text)
    return tuple(deduped)
