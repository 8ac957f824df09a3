"""YAML config loading: read -> expand ${ENV} -> strict decode -> validate.

Every entry point either returns a fully decoded (and, when the target type
defines ``validate()``, validated) dataclass, or raises a ConfigError whose
message starts with the failing stage.
"""

from __future__ import annotations

import functools
import importlib.resources
import logging
import os
from collections import ChainMap
from collections.abc import Hashable
from pathlib import Path
from types import ModuleType
from typing import Any, Mapping, Protocol, TypeVar, cast, runtime_checkable

import yaml
from dotenv import dotenv_values

from yamlcfg.decode import DecodeError, SourceScalar, decode_into
from yamlcfg.envexpand import expand_env, find_references
from yamlcfg.errors import (
    STAGE_READ_RESOURCE,
    ConfigDecodeError,
    ConfigError,
    ConfigReadError,
    ConfigValidationError,
)
from yamlcfg.observability.logging import get_logger

T = TypeVar("T")

_MISSING_DOCUMENT = object()

log = get_logger("yamlcfg.loader")


@runtime_checkable
class Validator(Protocol):
    """Optional capability: raise (or return an Exception) to reject a config."""

    def validate(self) -> object: ...


class _StrictLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys.

    Implicitly typed scalars (bool, int, float, timestamp) are built as
    SourceScalar so string fields can recover the text as written.
    """

    def construct_mapping(self, node: yaml.MappingNode, deep: bool = False) -> dict[Any, Any]:
        seen: set[Any] = set()
        for key_node, _ in node.value:
            # "<<" merge keys are resolved by flatten_mapping and may be overridden.
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                continue
            if key in seen:
                raise yaml.constructor.ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    f"mapping key {key!r} already defined",
                    key_node.start_mark,
                )
            seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _keep_source_text(construct: Any) -> Any:
    def _construct(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> SourceScalar:
        return SourceScalar(construct(loader, node), node.value)

    return _construct


for _tag, _construct in (
    ("tag:yaml.org,2002:bool", yaml.constructor.SafeConstructor.construct_yaml_bool),
    ("tag:yaml.org,2002:int", yaml.constructor.SafeConstructor.construct_yaml_int),
    ("tag:yaml.org,2002:float", yaml.constructor.SafeConstructor.construct_yaml_float),
    ("tag:yaml.org,2002:timestamp", yaml.constructor.SafeConstructor.construct_yaml_timestamp),
):
    _StrictLoader.add_constructor(_tag, _keep_source_text(_construct))
del _tag, _construct


@functools.lru_cache(maxsize=None)
def _has_validator(cls: type) -> bool:
    return issubclass(cls, Validator)


def layered_environ(dotenv_path: str | Path | None) -> Mapping[str, str]:
    """Return the lookup used for ${VAR}: os.environ, optionally backed by a .env file."""

    if dotenv_path is None:
        return os.environ
    file_values = {k: v for k, v in dotenv_values(dotenv_path).items() if v is not None}
    # Real environment wins over the .env file; os.environ itself is never touched.
    return ChainMap(os.environ, file_values)


def _fail(err: ConfigError, *, source: str) -> ConfigError:
    log.warning("config_failed", source=source, stage=err.stage, error=err.message)
    return err


def unmarshal_config(target: type[T] | T, data: bytes | str, *, environ: Mapping[str, str] | None = None) -> T:
    """Expand env references in `data` and strictly decode it into `target`.

    No validation is run. Unknown keys, YAML syntax errors and type mismatches
    raise ConfigDecodeError.
    """

    if isinstance(data, bytes):
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ConfigDecodeError(f"yaml: input is not valid UTF-8: {e}") from e
    else:
        text = data

    if log.logger.isEnabledFor(logging.DEBUG):
        log.debug("config_env_refs", refs=[r.name for r in find_references(text)])

    text = expand_env(text, environ)

    loader = _StrictLoader(text)
    try:
        node = loader.get_single_node()
        doc = loader.construct_document(node) if node is not None else _MISSING_DOCUMENT
    except yaml.YAMLError as e:
        raise ConfigDecodeError(f"yaml: {e}") from e
    finally:
        loader.dispose()

    if doc is _MISSING_DOCUMENT:
        # An empty or comment-only stream holds no document at all.
        raise ConfigDecodeError("EOF")

    try:
        return decode_into(target, doc)
    except DecodeError as e:
        raise ConfigDecodeError(str(e)) from e


def _parse(target: type[T] | T, data: bytes | str, *, source: str, dotenv_path: str | Path | None) -> T:
    log.debug("config_read", source=source, bytes=len(data))

    try:
        cfg = unmarshal_config(target, data, environ=layered_environ(dotenv_path))
    except ConfigDecodeError as e:
        e.path = source
        raise _fail(e, source=source)

    if _has_validator(type(cfg)):
        try:
            result = cast(Validator, cfg).validate()
        except Exception as e:  # noqa: BLE001
            raise _fail(ConfigValidationError(str(e), path=source), source=source) from e
        if isinstance(result, Exception):
            raise _fail(ConfigValidationError(str(result), path=source), source=source) from result

    log.debug("config_loaded", source=source, target=type(cfg).__qualname__)
    return cfg


def parse(target: type[T], path: str | Path, *, dotenv_path: str | Path | None = None) -> T:
    """Read the YAML file at `path` and decode it into a new `target` instance.

    Args:
        target: Dataclass type describing the config schema.
        path: Filesystem path of the YAML file.
        dotenv_path: Optional .env file consulted for ${VAR} lookups after
            the process environment.

    Raises:
        ConfigReadError: "reading config file: ..."
        ConfigDecodeError: "unmarshalling config: ..."
        ConfigValidationError: "validating config: ..."
    """

    config_path = Path(path)
    try:
        data = config_path.read_bytes()
    except OSError as e:
        raise _fail(ConfigReadError(str(e), path=str(config_path)), source=str(config_path)) from e
    return _parse(target, data, source=str(config_path), dotenv_path=dotenv_path)


def parse_with_config(config: T, path: str | Path, *, dotenv_path: str | Path | None = None) -> T:
    """Like `parse`, but merge the file over an instance pre-populated with defaults.

    Fields absent from the file keep the values held by `config`. `config`
    itself is left unchanged; the merged result is a new instance.
    """

    if isinstance(config, type):
        raise TypeError("parse_with_config() needs a config instance; use parse() for a type")
    return parse(config, path, dotenv_path=dotenv_path)  # type: ignore[arg-type]


def _resource_node(anchor: str | ModuleType | Any, path: str) -> Any:
    parts = path.split("/")
    if not path or path.startswith("/") or any(p in ("", ".", "..") for p in parts):
        raise ValueError(f"invalid resource path {path!r}")
    node = importlib.resources.files(anchor) if isinstance(anchor, (str, ModuleType)) else anchor
    for part in parts:
        node = node.joinpath(part)
    return node


def parse_resource(
    target: type[T] | T,
    anchor: str | ModuleType | Any,
    path: str,
    *,
    dotenv_path: str | Path | None = None,
) -> T:
    """Load config bundled as package data.

    `anchor` is a package (name or module) resolved through
    ``importlib.resources.files``, or any Traversable such as a ``Path``.
    `path` is a "/"-separated path relative to it.
    """

    source = f"{getattr(anchor, '__name__', anchor)}:{path}"
    try:
        data = _resource_node(anchor, path).read_bytes()
    except (OSError, ImportError, TypeError, ValueError) as e:
        err = ConfigReadError(str(e) or type(e).__name__, path=source, stage=STAGE_READ_RESOURCE)
        raise _fail(err, source=source) from e
    return _parse(target, data, source=source, dotenv_path=dotenv_path)


def parse_bytes(
    target: type[T] | T,
    data: bytes | str,
    *,
    dotenv_path: str | Path | None = None,
    source: str = "<bytes>",
) -> T:
    """Expand, decode and validate in-memory YAML; no I/O."""

    return _parse(target, data, source=source, dotenv_path=dotenv_path)
