from __future__ import annotations

from typing import Any

from noderegistry.core.errors import UnknownTypeError
from noderegistry.core.nodes.catalog import NodeCatalog
from noderegistry.core.nodes.locks import KeyedLocks
from noderegistry.core.nodes.models import NodeType


class NodeTypeController:
    """
    Enable/disable for a single node type.

    Requests that would not change anything are answered from the catalog
    without touching the loader, unless the type carries an error: then the
    action always runs so the type gets a chance to recover.
    """

    def __init__(self, *, catalog: NodeCatalog, loader: Any, event_logger: Any = None, logger: Any = None):
        self.catalog = catalog
        self.loader = loader
        self.event_logger = event_logger
        self.logger = logger
        self._locks = KeyedLocks()

    def _log(self, trace_id: str, event_type: str, details: dict) -> None:
        if self.event_logger is not None:
            self.event_logger.log(trace_id, event_type, details)

    def set_enabled(self, type_id: str, desired: bool, *, trace_id: str = "nodes") -> NodeType:
        desired = bool(desired)
        with self._locks.hold(type_id):
            node = self.catalog.get(type_id)
            if node is None:
                raise UnknownTypeError(type_id=type_id)

            if node.enabled == desired and node.settled:
                self._log(trace_id, "node.enable_noop", {"type_id": type_id, "enabled": desired})
                return node

            if desired:
                spec = self.loader.enable(node)
                updated = self.catalog.set_enabled(type_id, True, err=spec.err, config=spec.config, info=spec.info)
            else:
                err = self.loader.disable(node)
                updated = self.catalog.set_enabled(type_id, False, err=err)

        self._log(
            trace_id,
            "node.enable" if desired else "node.disable",
            {"type_id": type_id, "module": updated.module, "recovered_from": node.err or None, "err": updated.err or None},
        )
        if self.logger is not None:
            if updated.err:
                self.logger.warning(f"Node type {type_id} {'enabled' if desired else 'disabled'} with error: {updated.err}")
            else:
                self.logger.info(f"Node type {type_id} {'enabled' if desired else 'disabled'}.")
        return updated
