from __future__ import annotations

"""
NodeRegistry: the single entry point the transport talks to.

Every mutating call goes through the RequestValidator first (capability, then
payload shape); reads go straight to the query facade.
"""

from typing import Any, Dict, List, Optional, Union

from noderegistry.core.nodes.catalog import NodeCatalog
from noderegistry.core.nodes.controller import NodeTypeController
from noderegistry.core.nodes.loader import NodeLoader
from noderegistry.core.nodes.models import OutputFormat
from noderegistry.core.nodes.orchestrator import ModuleOrchestrator
from noderegistry.core.nodes.package_manager import PackageIndex, PipPackageManager
from noderegistry.core.nodes.query import NodeQuery
from noderegistry.core.nodes.validator import RequestValidator


class NodeRegistry:
    def __init__(
        self,
        *,
        capability: Any,
        package_manager: Any,
        loader: Any,
        core_types: Optional[List[str]] = None,
        event_logger: Any = None,
        logger: Any = None,
    ):
        self.logger = logger
        self.event_logger = event_logger
        self.loader = loader
        self.package_manager = package_manager
        self.core_types = list(core_types or [])
        self.catalog = NodeCatalog()
        self.validator = RequestValidator(capability=capability)
        self.controller = NodeTypeController(catalog=self.catalog, loader=loader, event_logger=event_logger, logger=logger)
        self.orchestrator = ModuleOrchestrator(catalog=self.catalog, package_manager=package_manager, loader=loader, event_logger=event_logger, logger=logger)
        self.query = NodeQuery(catalog=self.catalog, orchestrator=self.orchestrator)
        self._started = False

    async def start(self, *, trace_id: str = "startup") -> None:
        """
        Seed the catalog from the installed package set. Runs once.
        """
        if self._started:
            return
        packages = await self.package_manager.installed()
        core = self.loader.core_specs(self.core_types) if self.loader is not None else []
        self.catalog.seed(packages, core)
        self._started = True
        counts = self.catalog.counts()
        if self.event_logger is not None:
            self.event_logger.log(trace_id, "registry.seeded", counts)
        if self.logger is not None:
            self.logger.info(f"Registry seeded: {counts['modules']} modules, {counts['types']} node types ({counts['errored']} with errors).")

    # ---- reads ----
    def get_all(self, fmt: OutputFormat = OutputFormat.JSON) -> Union[List[Dict[str, Any]], str]:
        return self.query.get_all(fmt)

    def get_one(self, type_id: str, fmt: OutputFormat = OutputFormat.JSON) -> Union[Dict[str, Any], str]:
        return self.query.get_one(type_id, fmt)

    def get_module(self, module_id: str) -> Dict[str, Any]:
        return self.query.get_module(module_id)

    def health(self) -> Dict[str, Any]:
        return {
            "status": "ok" if self._started else "starting",
            "admin_changes": bool(getattr(self.validator.capability, "available", lambda: False)()),
            "pending": {k: v.value for k, v in self.orchestrator.pending().items()},
            **self.catalog.counts(),
        }

    # ---- mutations ----
    async def install(self, body: Any, *, trace_id: str = "nodes") -> Dict[str, Any]:
        self.validator.require_capability()
        request = self.validator.validate_install(body)
        return await self.orchestrator.install(request, trace_id=trace_id)

    async def uninstall(self, identifier: Optional[str], *, trace_id: str = "nodes") -> Dict[str, Any]:
        self.validator.require_capability()
        ident = self.validator.validate_identifier(identifier)
        return await self.orchestrator.uninstall(ident, trace_id=trace_id)

    def set_enabled(self, type_id: Optional[str], body: Any, *, trace_id: str = "nodes") -> Dict[str, Any]:
        self.validator.require_capability()
        desired = self.validator.validate_set_enabled(body)
        ident = self.validator.validate_identifier(type_id)
        return self.controller.set_enabled(ident, desired, trace_id=trace_id).to_info()


def build_registry(*, config_manager: Any, event_logger: Any = None, logger: Any = None, core: Optional[Dict[str, Any]] = None) -> NodeRegistry:
    """
    Production wiring: pip-backed package manager + entry-point loader, with
    the ConfigManager as capability provider.
    """
    cfg = config_manager.get()
    pm_cfg = cfg.package_manager
    loader = NodeLoader(group=pm_cfg.entry_point_group, core=core, logger=logger)
    index = PackageIndex(index_url=pm_cfg.index_url, timeout_seconds=pm_cfg.index_timeout_seconds) if pm_cfg.check_index else None
    pm = PipPackageManager(
        loader=loader,
        python=pm_cfg.python_executable,
        timeout_seconds=pm_cfg.timeout_seconds,
        extra_args=pm_cfg.extra_args,
        index=index,
        logger=logger,
    )
    return NodeRegistry(
        capability=config_manager,
        package_manager=pm,
        loader=loader,
        core_types=cfg.registry.core_types,
        event_logger=event_logger,
        logger=logger,
    )
