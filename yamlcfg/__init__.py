"""Typed YAML configuration loading.

- YAML decoded strictly into dataclasses (unknown keys are errors)
- ``${VAR}`` / ``${VAR:default}`` expansion from the environment
- Optional ``validate()`` hook on the config type
"""

from __future__ import annotations

from yamlcfg.envexpand import EnvReference, expand_env, find_references
from yamlcfg.errors import (
    ConfigDecodeError,
    ConfigError,
    ConfigReadError,
    ConfigValidationError,
    YamlCfgError,
)
from yamlcfg.loader import (
    Validator,
    parse,
    parse_bytes,
    parse_resource,
    parse_with_config,
    unmarshal_config,
)

__all__ = [
    "ConfigDecodeError",
    "ConfigError",
    "ConfigReadError",
    "ConfigValidationError",
    "EnvReference",
    "Validator",
    "YamlCfgError",
    "__version__",
    "expand_env",
    "find_references",
    "parse",
    "parse_bytes",
    "parse_resource",
    "parse_with_config",
    "unmarshal_config",
]

__version__ = "0.1.0"
