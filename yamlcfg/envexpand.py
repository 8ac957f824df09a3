"""Environment reference expansion for raw config text.

Only the braced forms are recognised:

  - ``${NAME}``          value of NAME, or "" when unset
  - ``${NAME:default}``  value of NAME when set (even to ""), else ``default``

A ``$`` that does not open a well-formed ``${...}`` is left alone, so
passwords and URLs such as ``my$password123`` survive untouched.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping

_ENV_REF_RE = re.compile(r"\$\{(\w+)(?::([^}]*))?\}", re.ASCII)


@dataclass(frozen=True, slots=True)
class EnvReference:
    name: str
    default: str | None = None


def find_references(text: str) -> list[EnvReference]:
    """Return every ``${...}`` reference in order of appearance."""

    return [EnvReference(name=m.group(1), default=m.group(2)) for m in _ENV_REF_RE.finditer(text)]


def expand_env(text: str, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ

    def repl(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in env:
            return env[name]
        # No default segment means "".
        return match.group(2) or ""

    return _ENV_REF_RE.sub(repl, text)
