"""Strict mapping -> dataclass decoder.

Decoding rules:
- Unknown keys are errors at every nesting level.
- Only keys present in the source overwrite fields; everything else keeps the
  dataclass default, or the value already held by the base instance.
- Nested dataclasses merge recursively; lists, dicts and scalars are replaced.
- An explicit ``null`` on a field that does not accept ``None`` is treated as
  absent.
- ``str`` and path fields take a YAML scalar's source text (``1.10``, ``0777``,
  ``NO``) rather than the value YAML resolved it to.
"""

from __future__ import annotations

import dataclasses
import enum
import functools
import types
from dataclasses import dataclass
from pathlib import PurePath
from typing import Any, Literal, Mapping, Union, get_args, get_origin, get_type_hints

_MISSING = object()
_NONE_TYPE = type(None)


class DecodeError(ValueError):
    """Raised when a mapping does not fit the target schema."""

    def __init__(self, message: str, *, key_path: str = ""):
        super().__init__(f"{key_path}: {message}" if key_path else message)
        self.key_path = key_path


@dataclass(frozen=True, slots=True)
class SourceScalar:
    """A YAML scalar resolved to a non-string value, with the text it was written as."""

    value: Any
    text: str


def plain(value: Any) -> Any:
    """Strip SourceScalar wrappers, recursively."""

    if isinstance(value, SourceScalar):
        return value.value
    if isinstance(value, Mapping):
        return {plain(k): plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [plain(v) for v in value]
    return value


@dataclass(frozen=True, slots=True)
class _FieldSpec:
    name: str
    key: str
    type: Any
    has_default: bool


@functools.lru_cache(maxsize=None)
def _field_specs(cls: type) -> tuple[_FieldSpec, ...]:
    try:
        hints = get_type_hints(cls)
    except NameError as e:
        raise TypeError(f"cannot resolve type hints of {cls.__qualname__}: {e}") from e

    specs: list[_FieldSpec] = []
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        specs.append(
            _FieldSpec(
                name=f.name,
                key=str(f.metadata.get("yaml", f.name)),
                type=hints.get(f.name, Any),
                has_default=(
                    f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING
                ),
            )
        )
    return tuple(specs)


def _join(key_path: str, key: object) -> str:
    return f"{key_path}.{key}" if key_path else str(key)


def _key_text(key: Any) -> Any:
    # `on:` / `no:` keys resolve to bools under YAML 1.1; match fields by source text.
    return key.text if isinstance(key, SourceScalar) else key


def _kind(value: Any) -> str:
    if isinstance(value, SourceScalar):
        value = value.value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "int"
    if isinstance(value, float):
        return "float"
    if isinstance(value, str):
        return "string"
    if isinstance(value, Mapping):
        return "mapping"
    if isinstance(value, list):
        return "sequence"
    return type(value).__name__


def _type_name(tp: Any) -> str:
    if isinstance(tp, type) and not get_args(tp):
        return tp.__qualname__
    return repr(tp).replace("typing.", "")


def _is_union(tp: Any) -> bool:
    origin = get_origin(tp)
    return origin is Union or origin is types.UnionType


def _is_text_type(tp: Any) -> bool:
    return tp is str or (isinstance(tp, type) and get_origin(tp) is None and issubclass(tp, PurePath))


def _allows_none(tp: Any) -> bool:
    if tp is Any or tp is _NONE_TYPE:
        return True
    return _is_union(tp) and _NONE_TYPE in get_args(tp)


def _mismatch(tp: Any, value: Any, key_path: str) -> DecodeError:
    return DecodeError(f"cannot decode {_kind(value)} into {_type_name(tp)}", key_path=key_path)


def decode_into(target: Any, data: Any, *, key_path: str = "") -> Any:
    """Decode `data` into a dataclass.

    Args:
        target: A dataclass type (start from field defaults) or a dataclass
            instance (merge over its current values). The instance is never
            mutated; a new one is returned.
        data: Parsed YAML document. ``None`` is treated as an empty mapping.

    Raises:
        DecodeError: On unknown keys, missing required fields or type mismatches.
        TypeError: If `target` is not a dataclass.
    """

    if isinstance(target, type):
        cls, base = target, None
    else:
        cls, base = type(target), target
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"config target must be a dataclass type or instance, got {cls!r}")
    return _decode_dataclass(cls, base, data, key_path)


def _decode_dataclass(cls: type, base: Any, data: Any, key_path: str) -> Any:
    if data is None:
        data = {}
    if not isinstance(data, Mapping):
        raise _mismatch(cls, data, key_path)

    data = {_key_text(k): v for k, v in data.items()}
    specs = _field_specs(cls)
    known = {s.key for s in specs}
    unknown = [str(k) for k in data if k not in known]
    if unknown:
        names = ", ".join(repr(k) for k in unknown)
        raise DecodeError(f"field(s) {names} not found in type {cls.__qualname__}", key_path=key_path)

    values: dict[str, Any] = {}
    for spec in specs:
        child_path = _join(key_path, spec.key)
        raw = data.get(spec.key, _MISSING)
        if raw is None and not _allows_none(spec.type):
            raw = _MISSING

        if raw is _MISSING:
            if base is None and not spec.has_default:
                raise DecodeError("missing required field", key_path=child_path)
            continue

        current = getattr(base, spec.name) if base is not None else _MISSING
        values[spec.name] = _decode_value(spec.type, raw, current, child_path)

    try:
        if base is None:
            return cls(**values)
        return dataclasses.replace(base, **values)
    except (TypeError, ValueError) as e:
        if isinstance(e, DecodeError):
            raise
        raise DecodeError(str(e), key_path=key_path) from e


def _decode_union(tp: Any, value: Any, current: Any, key_path: str) -> Any:
    args = get_args(tp)
    if value is None and _NONE_TYPE in args:
        return None
    candidates = [a for a in args if a is not _NONE_TYPE]
    if len(candidates) == 1:
        return _decode_value(candidates[0], value, current, key_path)

    # An exact type match wins over members that merely coerce (str | int, float | int).
    native = type(plain(value))
    exact = [a for a in candidates if a is native]
    for arg in exact + [a for a in candidates if a is not native]:
        try:
            return _decode_value(arg, value, current, key_path)
        except DecodeError:
            continue
    raise _mismatch(tp, value, key_path)


def _decode_value(tp: Any, value: Any, current: Any, key_path: str) -> Any:
    if tp is Any or tp is object:
        return plain(value)

    if _is_union(tp):
        return _decode_union(tp, value, current, key_path)

    text: str | None = None
    if isinstance(value, SourceScalar):
        if _is_text_type(tp):
            return tp(value.text)
        text, value = value.text, value.value

    origin = get_origin(tp)
    args = get_args(tp)

    if origin is Literal:
        for allowed in args:
            if value == allowed and type(value) is type(allowed):
                return value
            if isinstance(allowed, str) and text == allowed:
                return allowed
        choices = ", ".join(repr(a) for a in args)
        raise DecodeError(f"must be one of {choices}, got {text or value!r}", key_path=key_path)

    if origin in (list, set, frozenset) or tp in (list, set, frozenset):
        if not isinstance(value, list):
            raise _mismatch(tp, value, key_path)
        item_tp = args[0] if args else Any
        items = [_decode_value(item_tp, v, _MISSING, f"{key_path}[{i}]") for i, v in enumerate(value)]
        container = origin or tp
        if container is list:
            return items
        try:
            return container(items)
        except TypeError as e:
            raise DecodeError(f"unhashable item: {e}", key_path=key_path) from e

    if origin is tuple or tp is tuple:
        if not isinstance(value, list):
            raise _mismatch(tp, value, key_path)
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            item_tp = args[0] if args else Any
            return tuple(_decode_value(item_tp, v, _MISSING, f"{key_path}[{i}]") for i, v in enumerate(value))
        if len(value) != len(args):
            raise DecodeError(f"expected {len(args)} items, got {len(value)}", key_path=key_path)
        return tuple(
            _decode_value(item_tp, v, _MISSING, f"{key_path}[{i}]")
            for i, (item_tp, v) in enumerate(zip(args, value))
        )

    if origin is dict or tp is dict:
        if not isinstance(value, Mapping):
            raise _mismatch(tp, value, key_path)
        key_tp, val_tp = args if args else (Any, Any)
        return {
            _decode_value(key_tp, k, _MISSING, key_path): _decode_value(
                val_tp, v, _MISSING, _join(key_path, _key_text(k))
            )
            for k, v in value.items()
        }

    if not isinstance(tp, type):
        raise DecodeError(f"unsupported field type {_type_name(tp)}", key_path=key_path)

    if dataclasses.is_dataclass(tp):
        base = current if isinstance(current, tp) else None
        return _decode_dataclass(tp, base, value, key_path)

    if issubclass(tp, enum.Enum):
        for candidate in (value, text):
            if candidate is None:
                continue
            try:
                return tp(candidate)
            except ValueError:
                continue
        choices = ", ".join(repr(m.value) for m in tp)
        raise DecodeError(f"must be one of {choices}, got {text or value!r}", key_path=key_path)

    if tp is bool:
        if isinstance(value, bool):
            return value
        raise _mismatch(tp, value, key_path)

    if tp is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        raise _mismatch(tp, value, key_path)

    if tp is float:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(value)
        raise _mismatch(tp, value, key_path)

    if _is_text_type(tp):
        if isinstance(value, str):
            return tp(value)
        raise _mismatch(tp, value, key_path)

    if isinstance(value, tp):
        return value
    raise _mismatch(tp, value, key_path)
