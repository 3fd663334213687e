from __future__ import annotations

"""
ModuleOrchestrator: install/uninstall through the package manager.

Per module key: absent -> INSTALLING -> INSTALLED -> UNINSTALLING -> absent.
The in-flight marker is the lock; a concurrent request for the same key fails
with OperationInProgressError instead of queueing.

The catalog is written only after the package manager reports success, so a
failed or timed-out delegation leaves the registry exactly as it was.
"""

from typing import Any, Dict, List

from noderegistry.core.errors import (
    AlreadyInstalledError,
    InstallFailedError,
    NodeModuleNotFoundError,
    NotInstalledError,
    OperationInProgressError,
    UninstallFailedError,
)
from noderegistry.core.nodes.catalog import NodeCatalog
from noderegistry.core.nodes.loader import canonical_name
from noderegistry.core.nodes.locks import InFlight
from noderegistry.core.nodes.models import InstallRequest, ModuleState, module_info
from noderegistry.core.nodes.package_manager import PackageManagerError, PackageStatus


class ModuleOrchestrator:
    def __init__(self, *, catalog: NodeCatalog, package_manager: Any, loader: Any = None, event_logger: Any = None, logger: Any = None):
        self.catalog = catalog
        self.package_manager = package_manager
        self.loader = loader
        self.event_logger = event_logger
        self.logger = logger
        self._inflight = InFlight()

    def _log(self, trace_id: str, event_type: str, details: Dict[str, Any]) -> None:
        if self.event_logger is not None:
            self.event_logger.log(trace_id, event_type, details)

    def pending(self) -> Dict[str, ModuleState]:
        return self._inflight.snapshot()

    async def install(self, request: InstallRequest, *, trace_id: str = "nodes") -> Dict[str, Any]:
        key = canonical_name(request.module) if request.module else str(request.file)
        with self._inflight.operation(key, ModuleState.INSTALLING):
            if request.module and self.catalog.get_module(key) is not None:
                self._log(trace_id, "node.install_rejected", {"module": key, "reason": "already_installed"})
                raise AlreadyInstalledError(module_id=key)

            self._log(trace_id, "node.install_started", {"ref": request.ref, "version": request.version})
            try:
                pkg = await self.package_manager.install(request.ref, version=request.version)
            except PackageManagerError as e:
                self._log(trace_id, "node.install_failed", {"ref": request.ref, "status": e.status.value, "message": e.message})
                if e.status == PackageStatus.NOT_FOUND:
                    raise NodeModuleNotFoundError(e.message or f"Module {request.ref} not found.", module_id=key) from e
                raise InstallFailedError(e.message, module_id=key, status=e.status.value) from e

            existing = self.catalog.get_module(pkg.name)
            if existing is not None:
                # upload of a module that is already registered: pip has already
                # replaced it on disk, the catalog keeps the running version
                self._log(trace_id, "node.install_diverged", {"module": pkg.name, "catalog_version": existing.version, "installed_version": pkg.version})
                if self.logger is not None:
                    self.logger.warning(f"Module {pkg.name} is registered at {existing.version or '?'} but {pkg.version or '?'} is now installed.")
                raise AlreadyInstalledError(
                    f"Module {pkg.name} is already installed; the package on disk is now {pkg.version or 'unknown'}, the registry still runs {existing.version or 'unknown'}.",
                    module_id=pkg.name,
                    catalog_version=existing.version,
                    installed_version=pkg.version,
                )
            module = self.catalog.apply_install(pkg.name, pkg.types, pkg.version)

        types = self.catalog.types_of(module.id)
        self._log(trace_id, "node.install", {"module": module.id, "version": module.version, "types": module.types, "errors": {t.id: t.err for t in types if t.err}})
        if self.logger is not None:
            self.logger.info(f"Module {module.id} installed with {len(module.types)} node types.")
        return module_info(module, types)

    async def uninstall(self, identifier: str, *, trace_id: str = "nodes") -> Dict[str, Any]:
        module = self.catalog.find_module(identifier)
        if module is None:
            key = canonical_name(identifier)
            pending = self._inflight.state_of(key) or self._inflight.state_of(identifier)
            if pending is not None:
                # not in the catalog yet (or any more), but an operation owns the key
                self._log(trace_id, "node.uninstall_rejected", {"identifier": identifier, "reason": "operation_in_progress", "state": pending.value})
                raise OperationInProgressError(module_id=key, state=pending.value)
            self._log(trace_id, "node.uninstall_rejected", {"identifier": identifier, "reason": "not_installed"})
            raise NotInstalledError(identifier=identifier)

        with self._inflight.operation(module.id, ModuleState.UNINSTALLING):
            if self.catalog.get_module(module.id) is None:
                # removed by an uninstall that finished before we claimed the key
                raise NotInstalledError(identifier=identifier)
            self._log(trace_id, "node.uninstall_started", {"module": module.id})
            try:
                await self.package_manager.uninstall(module.id)
            except PackageManagerError as e:
                self._log(trace_id, "node.uninstall_failed", {"module": module.id, "status": e.status.value, "message": e.message})
                raise UninstallFailedError(e.message, module_id=module.id, status=e.status.value) from e

            removed = self.catalog.apply_uninstall(module.id)

        self._release(removed)
        self._log(trace_id, "node.uninstall", {"module": module.id, "types": removed})
        if self.logger is not None:
            self.logger.info(f"Module {module.id} uninstalled ({len(removed)} node types removed).")
        return {"id": module.id, "name": module.id, "version": module.version, "types": removed}

    def _release(self, type_ids: List[str]) -> None:
        if self.loader is None:
            return
        for tid in type_ids:
            self.loader.release(tid)
