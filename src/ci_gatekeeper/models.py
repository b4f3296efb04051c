# src/ci_gatekeeper/models.py
# Core Pydantic models for artifacts, cache entries, services and gates.

"""
Defines the configuration-facing data structures used throughout the library:
- ArtifactSpec: a large, slow-changing external artifact and its cache key
- CacheEntry: metadata of a published cache entry
- ServiceSpec / ReadinessProbe: a long-running dependency container
- GateSpec: a single verification task and its failure policy
"""

from datetime import datetime
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, Field, model_validator


class UnpackFormat(str, Enum):
    """Archive formats the provisioner knows how to extract."""

    NONE = "none"
    TAR_GZ = "tar.gz"
    TAR = "tar"
    ZIP = "zip"


class GatePolicy(str, Enum):
    """How a gate failure affects the overall result."""

    FATAL = "fatal"
    TOLERATED = "tolerated"  # reported, never blocks


class GateKind(str, Enum):
    """Built-in gate implementations."""

    COMMAND = "command"
    COVERAGE = "coverage"
    TODO = "todo"


class ArtifactSpec(BaseModel):
    """An external artifact provisioned through the cache."""

    name: str = Field(..., description="Artifact name referenced by gates")
    cache_key: str = Field(
        ..., description="Stable key; must change whenever the bytes could differ"
    )
    url: str | None = Field(default=None, description="Source URL of the artifact")
    installer: str | None = Field(
        default=None, description="URL of an installer script run with bash"
    )
    installer_args: list[str] = Field(
        default_factory=list,
        description="Shell lines run after the installer (e.g. 'rzup install')",
    )
    filename: str | None = Field(
        default=None, description="Local file name; defaults to the URL basename"
    )
    unpack: UnpackFormat = Field(default=UnpackFormat.NONE)
    target: Path = Field(..., description="Directory the artifact materialises into")
    bin_dir: str | None = Field(
        default=None, description="Sub-path of target exposed on the search path"
    )
    executables: list[str] = Field(
        default_factory=list, description="Globs (relative to target) to chmod +x"
    )
    paths: list[str] = Field(
        default_factory=list,
        description="Paths relative to target stored in the cache (default: what the fetch produced)",
    )
    timeout_seconds: float = Field(default=600.0)

    @model_validator(mode="after")
    def _check_source(self) -> "ArtifactSpec":
        if bool(self.url) == bool(self.installer):
            raise ValueError(
                f"artifact '{self.name}' must set exactly one of 'url' or 'installer'"
            )
        return self

    @property
    def local_filename(self) -> str:
        if self.filename:
            return self.filename
        source = self.url or self.installer or self.name
        name = PurePosixPath(source.split("?", 1)[0]).name
        return name or self.name

    @property
    def search_path(self) -> Path | None:
        """Directory to prepend to PATH, if any."""
        if self.bin_dir is None:
            return None
        return (self.target.expanduser() / self.bin_dir).resolve()


class CacheEntry(BaseModel):
    """Metadata written alongside a published cache entry."""

    key: str
    paths: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    size_bytes: int = 0


class ReadinessProbe(BaseModel):
    """A repeatable command whose success marks a service usable."""

    command: list[str] = Field(..., min_length=1)
    host: bool = Field(
        default=False, description="Run on the host instead of inside the container"
    )
    interval: float = Field(default=2.0, gt=0)
    retries: int = Field(default=10, ge=1)
    start_timeout: float | None = Field(
        default=None, description="Total budget in seconds (default interval * retries)"
    )

    @property
    def timeout(self) -> float:
        if self.start_timeout is not None:
            return self.start_timeout
        return self.interval * self.retries


class ServiceSpec(BaseModel):
    """A container a gate requires to be ready before running.

    Environment, ports, volumes and command are passed to the container
    verbatim and never interpreted.
    """

    name: str
    image: str
    command: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    ports: list[str] = Field(default_factory=list)
    volumes: list[str] = Field(default_factory=list)
    restart: str = Field(default="no")
    exclusive: bool = Field(
        default=False, description="Gates sharing this service run one at a time"
    )
    probe: ReadinessProbe | None = None


class GateSpec(BaseModel):
    """Configuration of a single gate."""

    id: str
    name: str = ""
    description: str = ""
    kind: GateKind = GateKind.COMMAND
    command: list[str] | str | None = None
    policy: GatePolicy = GatePolicy.FATAL
    artifacts: list[str] = Field(default_factory=list)
    services: list[str] = Field(default_factory=list)
    env: dict[str, str] = Field(default_factory=dict)
    cwd: Path | None = None
    timeout_seconds: float = Field(default=3600.0, gt=0)

    # coverage gates
    report: Path | None = None
    minimum: float | None = Field(default=None, ge=0, le=100)
    exclude: list[str] = Field(default_factory=list)

    # todo gates
    paths: list[Path] = Field(default_factory=lambda: [Path(".")])
    markers: list[str] = Field(default_factory=lambda: ["TODO", "FIXME"])
    include: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_kind(self) -> "GateSpec":
        if not self.name:
            self.name = self.id
        if self.kind == GateKind.COMMAND and not self.command:
            raise ValueError(f"command gate '{self.id}' requires a 'command'")
        if self.kind == GateKind.COVERAGE:
            if self.report is None or self.minimum is None:
                raise ValueError(
                    f"coverage gate '{self.id}' requires 'report' and 'minimum'"
                )
        return self

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "kind": self.kind.value,
            "policy": self.policy.value,
            "description": self.description,
        }
