"""Layered configuration: defaults, ``p4scm.toml``, then explicit overrides.

File layout::

    [perforce]
    client = "my-ws"
    user = "alice"
    port = "ssl:perforce:1666"
    password = "env:P4PASSWD"
    charset = "utf8"
    dir = "."
    command = "p4"
    p4config = ".p4config"

    [log]
    verbosity = "warning"
    debug_commands = false

A value of ``"none"`` (or an empty string) means "not set", matching the
editor settings this file mirrors. Secrets may be written as ``env:NAME``.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

try:
    import tomllib
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore

import tomli_w
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigError

CONFIG_FILENAME = "p4scm.toml"
CONFIG_PATH_ENV = "P4SCM_CONFIG_PATH"
DEFAULT_EXECUTABLE = "p4"

LOG_LEVELS = ("debug", "info", "warning", "error")

# TOML key -> P4Options field
PERFORCE_KEYS: Dict[str, str] = {
    "client": "client_name",
    "user": "user_name",
    "port": "server_address",
    "password": "password",
    "charset": "charset",
    "dir": "cwd",
    "command": "executable_path",
    "p4config": "config_path",
}

LOG_KEYS = ("verbosity", "debug_commands")

SECRET_KEYS = ("password",)

DEFAULT_CONFIG: Dict[str, Any] = {
    "perforce": {
        "client": "none",
        "user": "none",
        "port": "none",
        "password": "none",
        "charset": "none",
        "command": DEFAULT_EXECUTABLE,
    },
    "log": {
        "verbosity": "warning",
        "debug_commands": False,
    },
}


class P4Options(BaseModel):
    """Connection settings handed to every p4 invocation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    cwd: Optional[str] = None
    client_name: Optional[str] = None
    user_name: Optional[str] = None
    server_address: Optional[str] = None
    password: Optional[str] = None
    charset: Optional[str] = None
    config_path: Optional[str] = None
    executable_path: Optional[str] = None

    @property
    def executable(self) -> str:
        return self.executable_path or DEFAULT_EXECUTABLE

    def to_env(self) -> Dict[str, str]:
        """Environment variables p4 reads its connection settings from."""
        pairs = {
            "P4CLIENT": self.client_name,
            "P4USER": self.user_name,
            "P4PORT": self.server_address,
            "P4PASSWD": self.password,
            "P4CHARSET": self.charset,
            "P4CONFIG": self.config_path,
        }
        return {k: v for k, v in pairs.items() if v}

    def redacted(self) -> Dict[str, Any]:
        data = self.model_dump()
        if data.get("password"):
            data["password"] = "***"
        return data


class LogSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    verbosity: str = "warning"
    debug_commands: bool = False

    @field_validator("verbosity")
    @classmethod
    def _check_verbosity(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in LOG_LEVELS:
            raise ValueError(f"verbosity must be one of {', '.join(LOG_LEVELS)}")
        return value


class P4ScmConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    options: P4Options = P4Options()
    log: LogSettings = LogSettings()
    source: Optional[Path] = None


def _unset(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in ("", "none"))


def _resolve_reference(value: str, environ: Mapping[str, str], key: str) -> str:
    if not value.startswith("env:"):
        return value
    name = value[len("env:"):].strip()
    if not name:
        raise ConfigError(f"Empty env: reference for [perforce].{key}")
    resolved = environ.get(name)
    if resolved is None:
        raise ConfigError(f"Environment variable {name} referenced by [perforce].{key} is not set")
    return resolved


class ConfigLoader:
    """Resolve the effective configuration for a workspace."""

    @staticmethod
    def find_config_file(
        start: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> Optional[Path]:
        env = os.environ if environ is None else environ
        explicit = env.get(CONFIG_PATH_ENV)
        if explicit:
            return Path(explicit).expanduser().resolve()

        cwd = (start or Path.cwd()).resolve()
        for parent in [cwd, *cwd.parents]:
            candidate = parent / CONFIG_FILENAME
            if candidate.is_file():
                return candidate
        return None

    @staticmethod
    def read_toml(path: Path) -> Dict[str, Any]:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigError(f"Invalid config TOML: {path} ({e})") from e
        return data

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        *,
        start: Optional[Path] = None,
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> P4ScmConfig:
        """Load defaults, then the config file (if any), then ``overrides``.

        ``overrides`` uses the same keys as the ``[perforce]`` table; unset
        values are ignored so CLI flags that were not given do not clobber the
        file.
        """
        env = os.environ if environ is None else environ
        path = config_path.resolve() if config_path else cls.find_config_file(start, env)

        data: Dict[str, Any] = {}
        if path is not None:
            data = cls.read_toml(path)

        merged = merge_defaults(DEFAULT_CONFIG, data)
        perforce = dict(merged.get("perforce") or {})
        for key, value in (overrides or {}).items():
            if not _unset(value):
                perforce[key] = value

        options_data: Dict[str, Any] = {}
        for key, value in perforce.items():
            field_name = PERFORCE_KEYS.get(key)
            if field_name is None:
                raise ConfigError(f"Unknown [perforce] key: {key}")
            if _unset(value):
                continue
            if not isinstance(value, str):
                raise ConfigError(f"[perforce].{key} must be a string")
            if key in SECRET_KEYS:
                value = _resolve_reference(value, env, key)
            options_data[field_name] = value

        cwd = options_data.get("cwd")
        if cwd and path is not None and not Path(cwd).is_absolute():
            options_data["cwd"] = str((path.parent / cwd).resolve())

        try:
            options = P4Options.model_validate(options_data)
            log = LogSettings.model_validate(merged.get("log") or {})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        return P4ScmConfig(options=options, log=log, source=path)


def merge_defaults(defaults: Dict[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(defaults)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_defaults(merged[key], value)
        else:
            merged[key] = value
    return merged


def validate_config_dict(data: Mapping[str, Any]) -> List[str]:
    """Return human-readable problems with a raw config table (empty if valid)."""
    errors: List[str] = []
    for section in data:
        if section not in ("perforce", "log"):
            errors.append(f"Unknown section: [{section}]")

    perforce = data.get("perforce", {})
    if not isinstance(perforce, dict):
        errors.append("[perforce] must be a table")
        perforce = {}
    for key, value in perforce.items():
        if key not in PERFORCE_KEYS:
            errors.append(f"Unknown key: [perforce].{key}")
            continue
        if not isinstance(value, str):
            errors.append(f"[perforce].{key} must be a string")
            continue
        if key in SECRET_KEYS and not _unset(value) and not value.startswith("env:"):
            errors.append(f"Secret-like field must use env: reference: [perforce].{key}")

    log = data.get("log", {})
    if not isinstance(log, dict):
        errors.append("[log] must be a table")
        log = {}
    for key in log:
        if key not in LOG_KEYS:
            errors.append(f"Unknown key: [log].{key}")
    verbosity = log.get("verbosity")
    if verbosity is not None and str(verbosity).strip().lower() not in LOG_LEVELS:
        errors.append(f"[log].verbosity must be one of {', '.join(LOG_LEVELS)}")
    if "debug_commands" in log and not isinstance(log["debug_commands"], bool):
        errors.append("[log].debug_commands must be a boolean")

    return errors


def render_default_config() -> str:
    return tomli_w.dumps(DEFAULT_CONFIG)
