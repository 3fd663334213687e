from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from noderegistry.core.errors import NotInstalledError, UnknownTypeError
from noderegistry.core.nodes.catalog import NodeCatalog
from noderegistry.core.nodes.models import Module, ModuleState, OutputFormat, module_info


class NodeQuery:
    """Read-only projections of the catalog."""

    def __init__(self, *, catalog: NodeCatalog, orchestrator: Any = None):
        self.catalog = catalog
        self.orchestrator = orchestrator

    def get_all(self, fmt: OutputFormat = OutputFormat.JSON) -> Union[List[Dict[str, Any]], str]:
        types = self.catalog.list()
        if fmt == OutputFormat.HTML:
            # the editor only loads types that are usable
            return "\n".join(t.config for t in types if t.enabled and not t.err and t.config)
        return [t.to_info() for t in types]

    def get_one(self, type_id: str, fmt: OutputFormat = OutputFormat.JSON) -> Union[Dict[str, Any], str]:
        node = self.catalog.get(type_id)
        if node is None:
            raise UnknownTypeError(type_id=type_id)
        if fmt == OutputFormat.HTML:
            return node.config
        return node.to_info()

    def get_module(self, module_id: str) -> Dict[str, Any]:
        pending = self._pending_state(module_id)
        module = self.catalog.get_module(module_id)
        if module is None:
            if pending is None:
                raise NotInstalledError(module_id=module_id)
            return module_info(Module(id=module_id, state=pending), [])
        if pending is not None:
            module = module.model_copy(update={"state": pending})
        return module_info(module, self.catalog.types_of(module_id))

    def _pending_state(self, module_id: str) -> Optional[ModuleState]:
        if self.orchestrator is None:
            return None
        return self.orchestrator.pending().get(module_id)
