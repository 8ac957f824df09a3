from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from yamlcfg.cli import main

_SCHEMA_MODULE = '''
from dataclasses import dataclass


@dataclass
class Settings:
    name: str
    port: int = 8080

    def validate(self):
        if self.port == 0:
            raise ValueError("port must not be 0")


class NotADataclass:
    pass
'''


@pytest.fixture
def schema_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    pkg = tmp_path / "schemas"
    pkg.mkdir()
    (pkg / "yamlcfg_cli_settings.py").write_text(_SCHEMA_MODULE, encoding="utf-8")
    monkeypatch.syspath_prepend(str(pkg))
    return "yamlcfg_cli_settings"


@pytest.mark.usefixtures("restore_root_logging")
def test_check_ok(write_config: Callable[..., Path], schema_module: str, capsys: pytest.CaptureFixture[str]) -> None:
    p = write_config("name: svc\nport: 9000\n")

    rc = main(["check", str(p), "--schema", f"{schema_module}:Settings"])

    assert rc == 0
    assert "ok:" in capsys.readouterr().out


@pytest.mark.usefixtures("restore_root_logging")
@pytest.mark.parametrize(
    ("text", "stage"),
    [
        ("name: svc\nextra: 1\n", "unmarshalling config"),
        ("name: svc\nport: 0\n", "validating config: port must not be 0"),
    ],
)
def test_check_reports_stage(
    write_config: Callable[..., Path],
    schema_module: str,
    capsys: pytest.CaptureFixture[str],
    text: str,
    stage: str,
) -> None:
    p = write_config(text)

    rc = main(["check", str(p), "--schema", f"{schema_module}:Settings"])

    assert rc == 1
    assert stage in capsys.readouterr().err


@pytest.mark.usefixtures("restore_root_logging")
def test_check_missing_file(tmp_path: Path, schema_module: str, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["check", str(tmp_path / "missing.yaml"), "--schema", f"{schema_module}:Settings"])

    assert rc == 1
    assert "error: reading config file:" in capsys.readouterr().err


@pytest.mark.usefixtures("restore_root_logging")
@pytest.mark.parametrize("schema", ["no_colon", "yamlcfg_cli_missing_mod:Settings", "{mod}:Nope", "{mod}:NotADataclass"])
def test_check_bad_schema(
    write_config: Callable[..., Path], schema_module: str, capsys: pytest.CaptureFixture[str], schema: str
) -> None:
    p = write_config("name: svc\n")

    rc = main(["check", str(p), "--schema", schema.format(mod=schema_module)])

    assert rc == 2
    assert "cannot load schema" in capsys.readouterr().err


@pytest.mark.usefixtures("restore_root_logging")
def test_expand_prints_expanded_text(
    tmp_path: Path,
    write_config: Callable[..., Path],
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("YAMLCFG_CLI_NAME", "svc")
    monkeypatch.delenv("YAMLCFG_CLI_PORT", raising=False)
    dotenv = tmp_path / ".env"
    dotenv.write_text("YAMLCFG_CLI_PORT=7000\n", encoding="utf-8")
    p = write_config("name: ${YAMLCFG_CLI_NAME}\nport: ${YAMLCFG_CLI_PORT:80}\npassword: a$b\n")

    rc = main(["expand", str(p), "--dotenv", str(dotenv)])

    assert rc == 0
    assert capsys.readouterr().out == "name: svc\nport: 7000\npassword: a$b\n"


@pytest.mark.usefixtures("restore_root_logging")
def test_expand_missing_file(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    rc = main(["expand", str(tmp_path / "missing.yaml")])

    assert rc == 1
    assert "reading config file" in capsys.readouterr().err
