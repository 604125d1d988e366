"""Configuration parsing helpers for the mDNS responder.

Brief:
  This module contains the configuration-parsing utilities used by the CLI
  entrypoint. It centralizes:
    - reading YAML config files
    - applying CLI overrides
    - building the frozen ResponderConfig from the `responder` section

Inputs:
  - YAML config dicts and paths

Outputs:
  - Normalized config dicts and ResponderConfig instances
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_schema import ConfigError, ResponderConfig

_SECTIONS = ("responder", "logging")


def parse_config_file(config_path: Optional[str]) -> Dict[str, Any]:
    """Brief: Read and shape-check a YAML config file.

    Inputs:
      - config_path: Path to the YAML configuration file, or None for an
        empty configuration.

    Outputs:
      - dict: Parsed configuration mapping. An empty file yields {}.

    Raises:
      - ConfigError: When the file cannot be read or is not a mapping of
        known sections.
    """

    if not config_path:
        return {}

    try:
        with open(config_path, "r") as f:
            cfg = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(cfg, dict):
        raise ConfigError("Configuration root must be a mapping")

    unknown = sorted(str(k) for k in cfg if k not in _SECTIONS)
    if unknown:
        raise ConfigError(f"Unknown configuration section(s): {', '.join(unknown)}")

    for section in _SECTIONS:
        value = cfg.get(section)
        if value is not None and not isinstance(value, dict):
            raise ConfigError(f"config.{section} must be a mapping when present")

    return cfg


def apply_cli_overrides(
    cfg: Dict[str, Any],
    *,
    hostname: Optional[str] = None,
    log_level: Optional[str] = None,
) -> Dict[str, Any]:
    """Brief: Fold CLI flags into the parsed configuration (mutated in-place).

    Inputs:
      - cfg: Parsed configuration mapping.
      - hostname: Optional --hostname value.
      - log_level: Optional --log-level value.

    Outputs:
      - dict: The same mapping, for chaining.

    Example:
      >>> apply_cli_overrides({}, hostname='laptop')['responder']['hostname']
      'laptop'
    """

    if hostname:
        cfg["responder"] = {**(cfg.get("responder") or {}), "hostname": hostname}
    if log_level:
        cfg["logging"] = {**(cfg.get("logging") or {}), "level": log_level}
    return cfg


def build_responder_config(cfg: Dict[str, Any]) -> ResponderConfig:
    """Brief: Validate the `responder` section into a ResponderConfig.

    Inputs:
      - cfg: Parsed configuration mapping.

    Outputs:
      - ResponderConfig: Frozen settings with defaults applied.

    Raises:
      - ConfigError: When any field fails validation.
    """

    section = cfg.get("responder") or {}
    try:
        return ResponderConfig(**section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid responder configuration: {exc}") from exc
