from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RegistryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: int = Field(default=1, ge=1, le=10)
    # Capability flag: "administrative changes permitted".
    admin_changes_enabled: bool = True
    # Host-provided node types that belong to no module.
    core_types: List[str] = Field(default_factory=list)

    @field_validator("core_types", mode="before")
    @classmethod
    def _norm_core_types(cls, v):  # noqa: ANN001
        if v is None:
            return []
        if isinstance(v, str):
            v = [v]
        out: List[str] = []
        for item in v:
            s = str(item or "").strip()
            if s and s not in out:
                out.append(s)
        return out


class PackageManagerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: int = Field(default=1, ge=1, le=10)
    python_executable: str = ""  # empty: the running interpreter
    timeout_seconds: float = Field(default=300.0, ge=1.0, le=3600.0)
    extra_args: List[str] = Field(default_factory=list)
    entry_point_group: str = Field(default="noderegistry.nodes", min_length=1)
    check_index: bool = True
    index_url: str = "https://pypi.org/pypi"
    index_timeout_seconds: float = Field(default=10.0, gt=0, le=120.0)


class WebConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: int = Field(default=1, ge=1, le=10)
    bind_host: str = "127.0.0.1"
    port: int = Field(default=1880, ge=1, le=65535)
    allowed_origins: List[str] = Field(default_factory=list)
    max_request_bytes: int = Field(default=65536, ge=1024)

    @field_validator("allowed_origins")
    @classmethod
    def _no_wildcard(cls, v: List[str]) -> List[str]:
        if any(o == "*" for o in v):
            raise ValueError("Wildcard CORS origins are not allowed.")
        return v


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_dir: str = "logs"
    level: str = "INFO"
    include_tracebacks: bool = False
    max_bytes: int = Field(default=1_000_000, ge=10_000)
    backup_count: int = Field(default=5, ge=0, le=100)
    console: bool = True

    @field_validator("level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = str(v or "").upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError("unknown log level")
        return v


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    registry: RegistryConfig
    package_manager: PackageManagerConfig
    web: WebConfig
    logging: LoggingConfig


# filename -> (section name, model)
CONFIG_FILES = {
    "registry.json": ("registry", RegistryConfig),
    "package_manager.json": ("package_manager", PackageManagerConfig),
    "web.json": ("web", WebConfig),
    "logging.json": ("logging", LoggingConfig),
}
