from __future__ import annotations

"""
Registry models: modules, node types and what the package manager reports.

These are the contracts shared by the catalog, the controller, the orchestrator
and the transport. Node type `config` and `info` are opaque to the registry.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictBool, field_validator, model_validator


class ModuleState(str, Enum):
    UNINSTALLED = "UNINSTALLED"
    INSTALLED = "INSTALLED"
    INSTALLING = "INSTALLING"
    UNINSTALLING = "UNINSTALLING"


class OutputFormat(str, Enum):
    JSON = "json"  # structured info documents
    HTML = "html"  # rendered config fragments


class NodeType(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    module: Optional[str] = None  # None for core types
    enabled: bool = True
    err: str = ""
    config: str = ""
    info: Dict[str, Any] = Field(default_factory=dict)

    @property
    def settled(self) -> bool:
        return not self.err

    def to_info(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.info or {})
        out.update({"id": self.id, "module": self.module, "enabled": bool(self.enabled), "types": [self.id]})
        if self.err:
            out["err"] = self.err
        return out


class Module(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    state: ModuleState = ModuleState.INSTALLED
    version: str = ""
    types: List[str] = Field(default_factory=list)


class NodeTypeSpec(BaseModel):
    """
    One node type as reported by the loader or package manager.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1)
    config: str = ""
    info: Dict[str, Any] = Field(default_factory=dict)
    err: str = ""


class PackageInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    version: str = ""
    types: List[NodeTypeSpec] = Field(default_factory=list)


class InstallRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    module: Optional[str] = None
    file: Optional[str] = None  # uploaded package reference (local path or URL)
    version: Optional[str] = None

    @field_validator("module", "file", "version", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, str):
            raise ValueError("must be a string")
        v = v.strip()
        return v or None

    @model_validator(mode="after")
    def _module_or_file(self) -> "InstallRequest":
        if not self.module and not self.file:
            raise ValueError("module or file required")
        return self

    @property
    def ref(self) -> str:
        return str(self.module or self.file)


class SetEnabledRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: StrictBool


def module_info(module: Module, types: List[NodeType]) -> Dict[str, Any]:
    return {
        "id": module.id,
        "name": module.id,
        "version": module.version,
        "state": module.state.value,
        "types": [t.to_info() for t in types],
    }
