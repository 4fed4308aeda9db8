"""
Run configuration for the dump filter.

Sources, lowest precedence first:

1. a YAML or JSON mapping file (``--config`` or ``DUMPFILTER_CONFIG``)
2. ``DUMPFILTER_*`` environment variables
3. command-line options

Scalar settings are overridden by later sources. Excluded tables are the
union of every source, and every entry may be a comma-separated list:

    exclude: [audit_log, "sessions,cache"]

Environment variables:
    DUMPFILTER_EXCLUDE            comma-separated table names
    DUMPFILTER_PROGRESS           1/true/yes to show a progress bar
    DUMPFILTER_LOG                1/true/yes to log per-table timings
    DUMPFILTER_LOG_FORMAT         default | csv
    DUMPFILTER_LOG_LEVEL          logging level for diagnostics
    DUMPFILTER_DIALECT            mysql | postgresql
    DUMPFILTER_BACKSLASH_ESCAPES  override the dialect default (mysql: on, postgresql: off)
    DUMPFILTER_CHUNK_SIZE         read size in bytes
    DUMPFILTER_METRICS_FILE       Prometheus textfile to write at the end
"""
from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

_log = logging.getLogger("dumpfilter.config")

ENV_PREFIX = "DUMPFILTER_"
CONFIG_ENV = "DUMPFILTER_CONFIG"

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


class ConfigError(Exception):
    pass


def split_table_list(values: Union[str, List[Any], None]) -> List[str]:
    """``["a,b", " c "]`` -> ``["a", "b", "c"]``, empties dropped, order kept."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple, set, frozenset)):
        values = [values]
    out: List[str] = []
    for value in values:
        for part in str(value).split(","):
            name = part.strip()
            if name and name not in out:
                out.append(name)
    return out


class FilterSettings(BaseModel):
    exclude: List[str] = Field(default_factory=list)
    progress: bool = False
    log: bool = False
    log_format: Literal["default", "csv"] = "default"
    log_level: str = "WARNING"
    dialect: Literal["mysql", "postgresql"] = "mysql"
    # None: follow the dialect
    backslash_escapes: Optional[bool] = None
    chunk_size: int = Field(default=64 * 1024, gt=0)
    metrics_file: Optional[str] = None

    @field_validator("exclude", mode="before")
    @classmethod
    def _split_exclude(cls, value: Any) -> List[str]:
        return split_table_list(value)

    @field_validator("log_level")
    @classmethod
    def _check_level(cls, value: str) -> str:
        level = str(value).strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @property
    def exclude_set(self) -> frozenset:
        return frozenset(self.exclude)


def _parse_bool(name: str, raw: str) -> bool:
    v = raw.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean (1/0, true/false, yes/no), got {raw!r}")


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a YAML or JSON mapping. JSON is tried first; anything else is parsed
    as YAML. Unlike optional override files, a config file that was asked for
    explicitly must exist and parse.
    """
    resolved = Path(path)
    try:
        raw_text = resolved.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"cannot read config file {resolved}: {exc}") from exc

    try:
        data = json.loads(raw_text)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ConfigError(f"config file {resolved} is neither valid JSON nor YAML: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {resolved} must contain a mapping, got {type(data).__name__}")

    known = set(FilterSettings.model_fields)
    out: Dict[str, Any] = {}
    for key, value in data.items():
        norm = str(key).strip().replace("-", "_")
        if norm not in known:
            _log.warning("ignoring unknown config key %r in %s", key, resolved)
            continue
        out[norm] = value
    _log.debug("loaded %d settings from %s", len(out), resolved)
    return out


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    out: Dict[str, Any] = {}

    raw = env.get(ENV_PREFIX + "EXCLUDE")
    if raw is not None:
        out["exclude"] = split_table_list(raw)

    for name in ("progress", "log", "backslash_escapes"):
        key = ENV_PREFIX + name.upper()
        if env.get(key) is not None:
            out[name] = _parse_bool(key, env[key])

    for name in ("dialect", "log_format", "log_level", "metrics_file"):
        key = ENV_PREFIX + name.upper()
        value = (env.get(key) or "").strip()
        if value:
            out[name] = value

    key = ENV_PREFIX + "CHUNK_SIZE"
    value = (env.get(key) or "").strip()
    if value:
        try:
            out["chunk_size"] = int(value)
        except ValueError as exc:
            raise ConfigError(f"{key} must be an integer, got {value!r}") from exc

    return out


def resolve_settings(
    overrides: Optional[Mapping[str, Any]] = None,
    *,
    config_path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> FilterSettings:
    """
    Layer config file, environment and explicit overrides into one
    ``FilterSettings``. ``None`` values in ``overrides`` mean "not given".
    """
    env = os.environ if environ is None else environ
    layers: List[Dict[str, Any]] = []

    path = config_path or (env.get(CONFIG_ENV) or "").strip() or None
    if path:
        layers.append(load_config_file(path))
    layers.append(settings_from_env(env))
    layers.append({k: v for k, v in (overrides or {}).items() if v is not None})

    merged: Dict[str, Any] = {}
    exclude: List[str] = []
    for layer in layers:
        for key, value in layer.items():
            if key == "exclude":
                for name in split_table_list(value):
                    if name not in exclude:
                        exclude.append(name)
            else:
                merged[key] = value
    merged["exclude"] = exclude

    try:
        return FilterSettings(**merged)
    except ValidationError as exc:
        raise ConfigError(f"invalid configuration: {exc}") from exc
