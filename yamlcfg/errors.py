from __future__ import annotations

STAGE_READ_FILE = "reading config file"
STAGE_READ_RESOURCE = "reading config from embedded resource"
STAGE_DECODE = "unmarshalling config"
STAGE_VALIDATE = "validating config"


class YamlCfgError(Exception):
    """Base exception for this project."""


class ConfigError(YamlCfgError):
    """Raised when a config could not be produced.

    `str(err)` always starts with the stage that failed, e.g.
    ``"reading config file: [Errno 2] No such file or directory: ..."``.
    """

    stage: str = "loading config"

    def __init__(self, message: str, *, path: str | None = None, stage: str | None = None):
        if stage is not None:
            self.stage = stage
        super().__init__(f"{self.stage}: {message}")
        self.message = message
        self.path = path


class ConfigReadError(ConfigError):
    stage = STAGE_READ_FILE


class ConfigDecodeError(ConfigError):
    stage = STAGE_DECODE


class ConfigValidationError(ConfigError):
    stage = STAGE_VALIDATE
