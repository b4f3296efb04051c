# src/ci_gatekeeper/core/config.py
# Configuration management for the gate pipeline.
"""
Configuration models and loading utilities.

The config file (.gatekeeper.yaml) stores:
- Cache settings (location, enable/disable)
- Artifacts to provision
- Service dependencies
- Gates and their failure policies
"""

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from ci_gatekeeper.errors import ConfigError
from ci_gatekeeper.models import ArtifactSpec, GateSpec, ServiceSpec

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".gatekeeper.yaml"
ENV_NO_CACHE = "GATEKEEPER_NO_CACHE"
ENV_CACHE_DIR = "GATEKEEPER_CACHE_DIR"


class CacheSettings(BaseModel):
    """Cache backend settings."""

    enabled: bool = Field(default=True, description="Disable to always re-fetch")
    directory: Path = Field(
        default=Path.home() / ".cache" / "gatekeeper",
        description="Root directory of the local cache backend",
    )


class PipelineConfig(BaseModel):
    """Gate pipeline configuration model."""

    version: str = Field(default="1.0", description="Config version")
    cache: CacheSettings = Field(default_factory=CacheSettings)
    env: dict[str, str] = Field(
        default_factory=dict, description="Variables exported to every gate command"
    )
    artifacts: list[ArtifactSpec] = Field(default_factory=list)
    services: list[ServiceSpec] = Field(default_factory=list)
    gates: list[GateSpec] = Field(default_factory=list)
    reports_dir: Path = Field(
        default=Path(".gatekeeper/reports"), description="Where reports are written"
    )
    max_workers: Optional[int] = Field(
        default=None, ge=1, description="Parallel gates (default: one per gate)"
    )
    github_path: Optional[Path] = Field(
        default=None,
        description="File receiving exported search-path entries (e.g. $GITHUB_PATH)",
    )

    @model_validator(mode="after")
    def _check_references(self) -> "PipelineConfig":
        artifact_names = [a.name for a in self.artifacts]
        service_names = [s.name for s in self.services]
        gate_ids = [g.id for g in self.gates]
        for label, names in (
            ("artifact", artifact_names),
            ("service", service_names),
            ("gate", gate_ids),
        ):
            dupes = sorted({n for n in names if names.count(n) > 1})
            if dupes:
                raise ValueError(f"duplicate {label} names: {', '.join(dupes)}")
        for gate in self.gates:
            for name in gate.artifacts:
                if name not in artifact_names:
                    raise ValueError(f"gate '{gate.id}' references unknown artifact '{name}'")
            for name in gate.services:
                if name not in service_names:
                    raise ValueError(f"gate '{gate.id}' references unknown service '{name}'")
        return self

    def artifact(self, name: str) -> ArtifactSpec:
        for spec in self.artifacts:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def service(self, name: str) -> ServiceSpec:
        for spec in self.services:
            if spec.name == name:
                return spec
        raise KeyError(name)


# Global config cache
_cached_config: Optional[PipelineConfig] = None
_config_path: Optional[Path] = None


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    cache = dict(data.get("cache") or {})
    if os.environ.get(ENV_NO_CACHE, "").lower() in ("1", "true", "yes"):
        cache["enabled"] = False
    if os.environ.get(ENV_CACHE_DIR):
        cache["directory"] = os.environ[ENV_CACHE_DIR]
    if cache:
        data["cache"] = cache
    return data


def parse_config(data: dict[str, Any]) -> PipelineConfig:
    """Validate a raw mapping into a PipelineConfig."""
    try:
        return PipelineConfig.model_validate(_apply_env_overrides(dict(data)))
    except ValidationError as e:
        raise ConfigError(str(e)) from e


def load_config(path: Optional[Path] = None) -> PipelineConfig:
    """
    Load pipeline configuration from file.

    Searches for config in order:
    1. Specified path
    2. Current directory (.gatekeeper.yaml)
    3. Home directory (~/.gatekeeper.yaml)

    Raises ConfigError if no config is found or it does not validate.
    """
    global _cached_config, _config_path

    if _cached_config and (path is None or path == _config_path):
        return _cached_config

    if path is not None and not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    search_paths = []
    if path:
        search_paths.append(path)
    search_paths.extend([
        Path(CONFIG_FILENAME),
        Path.home() / CONFIG_FILENAME,
    ])

    config_file = None
    for p in search_paths:
        if p.exists():
            config_file = p
            break

    if not config_file:
        raise ConfigError(
            f"No {CONFIG_FILENAME} found. Run 'gatekeeper init' to create one."
        )

    try:
        with open(config_file) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a mapping")

    config = parse_config(data)
    logger.debug("Loaded config from %s", config_file)

    _cached_config = config
    _config_path = config_file

    return config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config, _config_path
    _cached_config = None
    _config_path = None
