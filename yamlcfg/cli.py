from __future__ import annotations

import argparse
import dataclasses
import importlib
import os
import sys
from pathlib import Path

from .errors import ConfigError, ConfigReadError
from .envexpand import expand_env
from .loader import layered_environ, parse
from .observability.logging import configure_logging, get_logger


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="yamlcfg", description="Load and check YAML config files")
    p.add_argument(
        "--log-level",
        default=os.getenv("YAMLCFG_LOG_LEVEL", "WARNING"),
        help="log level (default: $YAMLCFG_LOG_LEVEL or WARNING)",
    )
    sub = p.add_subparsers(dest="command", required=True)

    check = sub.add_parser("check", help="decode and validate a config file against a dataclass")
    check.add_argument("path", help="YAML config path")
    check.add_argument("--schema", required=True, help="dataclass to decode into, as module:Class")
    check.add_argument("--dotenv", default=None, help="optional .env file used for ${VAR} lookups")

    expand = sub.add_parser("expand", help="print the config with ${VAR} references expanded")
    expand.add_argument("path", help="YAML config path")
    expand.add_argument("--dotenv", default=None, help="optional .env file used for ${VAR} lookups")
    return p


def _load_schema(spec: str) -> type:
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"schema must look like module:Class, got {spec!r}")
    obj: object = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    if not (isinstance(obj, type) and dataclasses.is_dataclass(obj)):
        raise ValueError(f"{spec} is not a dataclass")
    return obj


def _check(args: argparse.Namespace) -> int:
    log = get_logger("yamlcfg.cli")
    try:
        schema = _load_schema(args.schema)
    except (ImportError, AttributeError, ValueError) as e:
        print(f"error: cannot load schema: {e}", file=sys.stderr)
        return 2

    try:
        cfg = parse(schema, args.path, dotenv_path=args.dotenv)
    except ConfigError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1

    log.info("check_ok", path=str(args.path), schema=args.schema)
    print(f"ok: {args.path} -> {type(cfg).__qualname__}")
    return 0


def _expand(args: argparse.Namespace) -> int:
    path = Path(args.path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        print(f"error: {ConfigReadError(str(e), path=str(path))}", file=sys.stderr)
        return 1

    sys.stdout.write(expand_env(text, layered_environ(args.dotenv)))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(level=args.log_level)

    if args.command == "check":
        return _check(args)
    return _expand(args)
