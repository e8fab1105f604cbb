"""Application configuration: defaults, then a config file, then the environment.

Files may be JSON (``.json``) or YAML (``.yaml`` / ``.yml``).  Recognised
environment variables::

    CODE_INSIGHT_VERBOSE        true/false
    CODE_INSIGHT_FORMAT         text | json
    CODE_INSIGHT_LOG_LEVEL      debug | info | warning | error | <number>
    CODE_INSIGHT_LOG_FORMAT     text | json
    CODE_INSIGHT_LOG_OUTPUT     stdout | stderr | file
    CODE_INSIGHT_LOG_FILE       path used when output is "file"
    CODE_INSIGHT_TOOL_TIMEOUT   seconds, applied to every tool
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from code_insight.model.tool_result import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT, ToolConfig

_logger = logging.getLogger(__name__)

ENV_PREFIX = "CODE_INSIGHT_"

OUTPUT_FORMATS = ("text", "json")
LOG_FORMATS = ("text", "json")
LOG_OUTPUTS = ("stdout", "stderr", "file")

_TRUE = ("1", "true", "yes", "on")


class ConfigError(ValueError):
    """Unreadable or malformed configuration."""


def default_config_path() -> Path:
    return Path.home() / ".code-insight" / "config.yaml"


@dataclass(frozen=True)
class LogConfig:
    level: str = "info"
    format: str = "text"          # text | json
    output: str = "stderr"        # stdout | stderr | file
    file_path: str = ""


@dataclass(frozen=True)
class ToolSettings:
    enabled: bool = True
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    options: dict[str, Any] = field(default_factory=dict)

    def to_tool_config(self) -> ToolConfig:
        return ToolConfig(
            enabled=self.enabled,
            timeout=self.timeout,
            max_retries=self.max_retries,
            custom_config=dict(self.options),
        )


@dataclass(frozen=True)
class AppConfig:
    """Immutable application configuration."""

    default_format: str = "text"  # text | json
    default_output: str = "stdout"
    verbose: bool = False
    log: LogConfig = field(default_factory=LogConfig)
    tools: dict[str, ToolSettings] = field(default_factory=dict)
    # applied to tools without their own entry
    default_timeout: float = DEFAULT_TIMEOUT

    def tool_settings(self, name: str) -> ToolSettings:
        return self.tools.get(name) or ToolSettings(timeout=self.default_timeout)

    def tool_config(self, name: str) -> ToolConfig:
        return self.tool_settings(name).to_tool_config()

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_format": self.default_format,
            "default_output": self.default_output,
            "verbose": self.verbose,
            "default_timeout": self.default_timeout,
            "log": {
                "level": self.log.level,
                "format": self.log.format,
                "output": self.log.output,
                "file_path": self.log.file_path,
            },
            "tools": {
                name: {
                    "enabled": s.enabled,
                    "timeout": s.timeout,
                    "max_retries": s.max_retries,
                    "options": dict(s.options),
                }
                for name, s in sorted(self.tools.items())
            },
        }


# ── parsing ─────────────────────────────────────────────────────────────


def _choice(value: Any, allowed: tuple[str, ...], key: str) -> str:
    text = str(value).strip().lower()
    if text not in allowed:
        raise ConfigError(f"{key}: expected one of {', '.join(allowed)}, got {value!r}")
    return text


def _number(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key}: expected a number, got {value!r}") from None


def _tool_settings(name: str, raw: Any, default_timeout: float) -> ToolSettings:
    if not isinstance(raw, Mapping):
        raise ConfigError(f"tools.{name}: expected a mapping")
    retries = raw.get("max_retries", DEFAULT_MAX_RETRIES)
    if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
        raise ConfigError(f"tools.{name}.max_retries: expected a non-negative integer, got {retries!r}")
    options = raw.get("options", {})
    if not isinstance(options, Mapping):
        raise ConfigError(f"tools.{name}.options: expected a mapping")
    return ToolSettings(
        enabled=bool(raw.get("enabled", True)),
        timeout=_number(raw.get("timeout", default_timeout), f"tools.{name}.timeout"),
        max_retries=retries,
        options=dict(options),
    )


def config_from_mapping(data: Mapping[str, Any]) -> AppConfig:
    """Build an ``AppConfig`` from parsed file contents."""
    if not isinstance(data, Mapping):
        raise ConfigError("configuration root must be a mapping")
    base = AppConfig()
    log_raw = data.get("log", {}) or {}
    if not isinstance(log_raw, Mapping):
        raise ConfigError("log: expected a mapping")
    log = LogConfig(
        level=str(log_raw.get("level", base.log.level)),
        format=_choice(log_raw.get("format", base.log.format), LOG_FORMATS, "log.format"),
        output=_choice(log_raw.get("output", base.log.output), LOG_OUTPUTS, "log.output"),
        file_path=str(log_raw.get("file_path", "") or ""),
    )
    default_timeout = _number(data.get("default_timeout", base.default_timeout), "default_timeout")
    tools_raw = data.get("tools", {}) or {}
    if not isinstance(tools_raw, Mapping):
        raise ConfigError("tools: expected a mapping")
    return AppConfig(
        default_format=_choice(data.get("default_format", base.default_format), OUTPUT_FORMATS, "default_format"),
        default_output=str(data.get("default_output", base.default_output)),
        verbose=bool(data.get("verbose", base.verbose)),
        log=log,
        tools={name: _tool_settings(name, raw, default_timeout) for name, raw in tools_raw.items()},
        default_timeout=default_timeout,
    )


def _read_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {path}: {exc}") from exc
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"malformed config file {path}: {exc}") from exc
    return data or {}


def apply_env_overrides(cfg: AppConfig, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    env = os.environ if environ is None else environ

    def get(key: str) -> Optional[str]:
        value = env.get(ENV_PREFIX + key)
        return value if value not in (None, "") else None

    changes: dict[str, Any] = {}
    log_changes: dict[str, Any] = {}
    if (value := get("VERBOSE")) is not None:
        changes["verbose"] = value.lower() in _TRUE
    if (value := get("FORMAT")) is not None:
        changes["default_format"] = _choice(value, OUTPUT_FORMATS, ENV_PREFIX + "FORMAT")
    if (value := get("LOG_LEVEL")) is not None:
        log_changes["level"] = value
    if (value := get("LOG_FORMAT")) is not None:
        log_changes["format"] = _choice(value, LOG_FORMATS, ENV_PREFIX + "LOG_FORMAT")
    if (value := get("LOG_OUTPUT")) is not None:
        log_changes["output"] = _choice(value, LOG_OUTPUTS, ENV_PREFIX + "LOG_OUTPUT")
    if (value := get("LOG_FILE")) is not None:
        log_changes["file_path"] = value
    if (value := get("TOOL_TIMEOUT")) is not None:
        timeout = _number(value, ENV_PREFIX + "TOOL_TIMEOUT")
        changes["default_timeout"] = timeout
        changes["tools"] = {name: replace(s, timeout=timeout) for name, s in cfg.tools.items()}
    if log_changes:
        changes["log"] = replace(cfg.log, **log_changes)
    return replace(cfg, **changes) if changes else cfg


def load_config(path: Optional[str | Path] = None, *, environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Defaults, overlaid by the file at *path* (or the default location), then the environment.

    An explicit *path* that does not exist is an error; a missing default
    file is not.
    """
    if path is not None:
        file_path = Path(path)
        if not file_path.is_file():
            raise ConfigError(f"config file not found: {file_path}")
        cfg = config_from_mapping(_read_file(file_path))
    else:
        file_path = default_config_path()
        cfg = config_from_mapping(_read_file(file_path)) if file_path.is_file() else AppConfig()
    _logger.debug("configuration loaded (file=%s)", file_path if file_path.is_file() else "none")
    return apply_env_overrides(cfg, environ)


def save_config(path: str | Path, cfg: AppConfig) -> Path:
    """Write *cfg* as JSON or YAML (by extension), creating parent directories."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    data = cfg.to_dict()
    if target.suffix.lower() == ".json":
        text = json.dumps(data, indent=2, sort_keys=True) + "\n"
    else:
        text = yaml.safe_dump(data, sort_keys=True, default_flow_style=False)
    target.write_text(text, encoding="utf-8")
    return target
