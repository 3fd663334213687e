"""
Node module registry and lifecycle controller.

Owns the in-memory catalog of modules and node types, installs and removes
modules through a package manager, and toggles node types on and off without
restarting the host.
"""

from noderegistry.core.nodes.service import NodeRegistry, build_registry

__all__ = ["NodeRegistry", "build_registry"]
