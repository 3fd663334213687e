from __future__ import annotations

"""
NodeLoader: finds node types through package entry points and runs their
enable/disable hooks.

A distribution contributes node types by declaring entry points in the
configured group, one per node type:

    [project.entry-points."noderegistry.nodes"]
    "http-request" = "mypack.http:HttpRequestNode"

The loaded object may expose:
- config_html: str, or a callable returning the editor fragment
- info: dict merged into the type's info document
- on_enable(): initialize; raising marks the type with an error
- on_disable(): release resources

Node code is not validated or sandboxed. Its failures are captured as the
type's `err` and never propagate out of the loader.
"""

import importlib
import importlib.metadata
import re
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from noderegistry.core.nodes.models import NodeType, NodeTypeSpec, PackageInfo


NODE_ENTRY_POINT_GROUP = "noderegistry.nodes"


def canonical_name(name: str) -> str:
    return re.sub(r"[-_.]+", "-", str(name or "").strip()).lower()


def _err_text(exc: BaseException) -> str:
    msg = str(exc)
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _config_of(obj: Any) -> str:
    cfg = getattr(obj, "config_html", "")
    if callable(cfg):
        cfg = cfg()
    return str(cfg or "")


def _info_of(obj: Any) -> Dict[str, Any]:
    info = getattr(obj, "info", None)
    if callable(info):
        info = info()
    return dict(info) if isinstance(info, dict) else {}


class NodeLoader:
    def __init__(self, *, group: str = NODE_ENTRY_POINT_GROUP, core: Optional[Dict[str, Any]] = None, logger: Any = None):
        self.group = str(group or NODE_ENTRY_POINT_GROUP)
        self.logger = logger
        self._core: Dict[str, Any] = dict(core or {})
        self._objects: Dict[str, Any] = {}
        self._lock = threading.Lock()

    # ---- discovery ----
    def _distributions(self) -> Dict[str, importlib.metadata.Distribution]:
        out: Dict[str, importlib.metadata.Distribution] = {}
        for dist in importlib.metadata.distributions():
            name = (dist.metadata or {}).get("Name")
            if not name:
                continue
            if not list(dist.entry_points.select(group=self.group)):
                continue
            out.setdefault(canonical_name(name), dist)
        return out

    def distribution_names(self) -> Set[str]:
        return set(self._distributions().keys())

    def scan(self) -> List[PackageInfo]:
        """
        Every installed distribution that contributes node types.
        """
        dists = self._distributions()
        return [self._describe_dist(name, dists[name]) for name in sorted(dists)]

    def inspect(self, name: str) -> Optional[PackageInfo]:
        importlib.invalidate_caches()
        dist = self._distributions().get(canonical_name(name))
        if dist is None:
            return None
        return self._describe_dist(canonical_name(name), dist)

    def core_specs(self, type_ids: Iterable[str] = ()) -> List[NodeTypeSpec]:
        """
        Host-provided types with no module. Ids listed in config but not
        registered with the loader are reported with an error.
        """
        ids = list(self._core.keys())
        for tid in type_ids:
            if tid not in ids:
                ids.append(tid)
        out: List[NodeTypeSpec] = []
        for tid in ids:
            if tid in self._core:
                out.append(self._load(tid, lambda tid=tid: self._core[tid]))
            else:
                out.append(NodeTypeSpec(id=tid, err="Core node type is not available."))
        return out

    def _describe_dist(self, name: str, dist: importlib.metadata.Distribution) -> PackageInfo:
        specs = [self._load(ep.name, ep.load) for ep in dist.entry_points.select(group=self.group)]
        return PackageInfo(name=name, version=str(dist.version or ""), types=specs)

    def _load(self, type_id: str, load: Callable[[], Any]) -> NodeTypeSpec:
        try:
            obj = load()
            config = _config_of(obj)
            info = _info_of(obj)
        except Exception as e:  # noqa: BLE001
            if self.logger:
                self.logger.warning(f"Node type {type_id} failed to load: {e}")
            return NodeTypeSpec(id=type_id, err=_err_text(e))
        with self._lock:
            self._objects[type_id] = obj
        err = self._call_hook(type_id, obj, "on_enable")
        return NodeTypeSpec(id=type_id, config=config, info=info, err=err)

    def _call_hook(self, type_id: str, obj: Any, hook: str) -> str:
        fn = getattr(obj, hook, None)
        if not callable(fn):
            return ""
        try:
            fn()
        except Exception as e:  # noqa: BLE001
            if self.logger:
                self.logger.warning(f"Node type {type_id} {hook} failed: {e}")
            return _err_text(e)
        return ""

    def _entry_point_for(self, node: NodeType) -> Optional[importlib.metadata.EntryPoint]:
        if not node.module:
            return None
        dist = self._distributions().get(canonical_name(node.module))
        if dist is None:
            return None
        for ep in dist.entry_points.select(group=self.group):
            if ep.name == node.id:
                return ep
        return None

    # ---- actions ----
    def enable(self, node: NodeType) -> NodeTypeSpec:
        """
        (Re-)initialize a node type. Always reloads so a type in error state
        picks up a fixed install.
        """
        if node.module is None:
            if node.id not in self._core:
                return NodeTypeSpec(id=node.id, config=node.config, info=node.info, err="Core node type is not available.")
            return self._load(node.id, lambda: self._core[node.id])
        ep = self._entry_point_for(node)
        if ep is None:
            return NodeTypeSpec(id=node.id, config=node.config, info=node.info, err=f"Node type {node.id} is no longer provided by {node.module}.")
        return self._load(node.id, ep.load)

    def disable(self, node: NodeType) -> str:
        with self._lock:
            obj = self._objects.pop(node.id, None)
        if obj is None:
            return ""
        return self._call_hook(node.id, obj, "on_disable")

    def release(self, type_id: str) -> None:
        with self._lock:
            obj = self._objects.pop(type_id, None)
        if obj is not None:
            self._call_hook(type_id, obj, "on_disable")

    def loaded(self) -> List[str]:
        with self._lock:
            return list(self._objects.keys())
