from __future__ import annotations

import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from noderegistry.core.errors import AlreadyInstalledError, InstallFailedError, NotInstalledError, UnknownTypeError
from noderegistry.core.nodes.models import Module, ModuleState, NodeType, NodeTypeSpec, PackageInfo


@dataclass(frozen=True)
class _Snapshot:
    types: Mapping[str, NodeType]
    modules: Mapping[str, Module]


def _freeze(types: Dict[str, NodeType], modules: Dict[str, Module]) -> _Snapshot:
    return _Snapshot(types=MappingProxyType(types), modules=MappingProxyType(modules))


class NodeCatalog:
    """
    Authoritative in-memory registry of modules and node types. No I/O.

    Copy-on-write: every mutation builds new mappings under the writer lock and
    publishes them with a single reference swap. Readers take the current
    snapshot without locking, so they never block each other and never see a
    half-applied mutation. Objects handed out are copies.
    """

    def __init__(self) -> None:
        self._write_lock = threading.Lock()
        self._snap = _freeze({}, {})

    # ---- reads ----
    def list(self) -> List[NodeType]:
        snap = self._snap
        return [t.model_copy(deep=True) for t in snap.types.values()]

    def get(self, type_id: str) -> Optional[NodeType]:
        t = self._snap.types.get(type_id)
        return t.model_copy(deep=True) if t is not None else None

    def get_module(self, module_id: str) -> Optional[Module]:
        m = self._snap.modules.get(module_id)
        return m.model_copy(deep=True) if m is not None else None

    def types_of(self, module_id: str) -> List[NodeType]:
        snap = self._snap
        m = snap.modules.get(module_id)
        if m is None:
            return []
        return [snap.types[tid].model_copy(deep=True) for tid in m.types if tid in snap.types]

    def find_module(self, identifier: str) -> Optional[Module]:
        """
        Resolve a module id or a node type id to the owning module.

        The module namespace wins when both match. Core types (no module)
        resolve to None.
        """
        snap = self._snap
        m = snap.modules.get(identifier)
        if m is None:
            t = snap.types.get(identifier)
            if t is not None and t.module:
                m = snap.modules.get(t.module)
        return m.model_copy(deep=True) if m is not None else None

    def counts(self) -> Dict[str, int]:
        snap = self._snap
        enabled = sum(1 for t in snap.types.values() if t.enabled)
        errored = sum(1 for t in snap.types.values() if t.err)
        return {"modules": len(snap.modules), "types": len(snap.types), "enabled": enabled, "errored": errored}

    # ---- mutations ----
    def seed(self, packages: Iterable[PackageInfo], core_types: Iterable[NodeTypeSpec] = ()) -> None:
        """
        Replace the whole registry. Startup only.
        """
        types: Dict[str, NodeType] = {}
        modules: Dict[str, Module] = {}
        for spec in core_types:
            types[spec.id] = _new_type(spec, module_id=None)
        for pkg in packages:
            ids: List[str] = []
            for spec in pkg.types:
                if spec.id in types:
                    # first registration wins; later duplicates are dropped
                    continue
                types[spec.id] = _new_type(spec, module_id=pkg.name)
                ids.append(spec.id)
            modules[pkg.name] = Module(id=pkg.name, state=ModuleState.INSTALLED, version=pkg.version, types=ids)
        with self._write_lock:
            self._snap = _freeze(types, modules)

    def apply_install(self, module_id: str, types: Iterable[NodeTypeSpec], version: str = "") -> Module:
        specs = _dedupe(types)
        with self._write_lock:
            snap = self._snap
            existing = snap.modules.get(module_id)
            if existing is not None and existing.state == ModuleState.INSTALLED:
                raise AlreadyInstalledError(module_id=module_id)
            for spec in specs:
                owner = snap.types.get(spec.id)
                if owner is not None and owner.module != module_id:
                    raise InstallFailedError(
                        f"Node type {spec.id} is already registered by {owner.module or 'core'}.",
                        module_id=module_id,
                        type_id=spec.id,
                    )
            new_types = dict(snap.types)
            for spec in specs:
                new_types[spec.id] = _new_type(spec, module_id=module_id)
            module = Module(id=module_id, state=ModuleState.INSTALLED, version=str(version or ""), types=[s.id for s in specs])
            new_modules = dict(snap.modules)
            new_modules[module_id] = module
            self._snap = _freeze(new_types, new_modules)
        return module.model_copy(deep=True)

    def apply_uninstall(self, module_id: str) -> List[str]:
        with self._write_lock:
            snap = self._snap
            module = snap.modules.get(module_id)
            if module is None:
                raise NotInstalledError(module_id=module_id)
            removed = [tid for tid in module.types if tid in snap.types]
            gone = set(removed)
            new_types = {tid: t for tid, t in snap.types.items() if tid not in gone}
            new_modules = {mid: m for mid, m in snap.modules.items() if mid != module_id}
            self._snap = _freeze(new_types, new_modules)
        return removed

    def set_enabled(
        self,
        type_id: str,
        enabled: bool,
        *,
        err: str = "",
        config: Optional[str] = None,
        info: Optional[Dict] = None,
    ) -> NodeType:
        with self._write_lock:
            snap = self._snap
            cur = snap.types.get(type_id)
            if cur is None:
                raise UnknownTypeError(type_id=type_id)
            update: Dict = {"enabled": bool(enabled), "err": str(err or "")}
            if config is not None:
                update["config"] = str(config)
            if info is not None:
                update["info"] = dict(info)
            node = cur.model_copy(update=update, deep=True)
            new_types = dict(snap.types)
            new_types[type_id] = node
            self._snap = _freeze(new_types, dict(snap.modules))
        return node.model_copy(deep=True)


def _new_type(spec: NodeTypeSpec, *, module_id: Optional[str]) -> NodeType:
    return NodeType(
        id=spec.id,
        module=module_id,
        enabled=True,
        err=spec.err,
        config=spec.config,
        info=dict(spec.info or {}),
    )


def _dedupe(types: Iterable[NodeTypeSpec]) -> List[NodeTypeSpec]:
    by_id: Dict[str, NodeTypeSpec] = {}
    for spec in types:
        by_id[spec.id] = spec
    return list(by_id.values())
