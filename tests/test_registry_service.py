from __future__ import annotations

import asyncio

import pytest

from noderegistry.core.errors import CapabilityUnavailableError, InvalidRequestError
from noderegistry.core.nodes import build_registry
from noderegistry.core.nodes.loader import NodeLoader
from noderegistry.core.nodes.models import OutputFormat
from noderegistry.core.nodes.package_manager import PipPackageManager
from tests.helpers.fakes import L


def test_start_seeds_once(registry, package_manager, event_logger):
    package_manager._installed = []
    asyncio.run(registry.start())
    assert registry.catalog.get_module("node-red-contrib-a") is not None
    assert [e["event"] for e in event_logger.tail()].count("registry.seeded") == 1


def test_health_reports_counts_and_capability(registry, capability):
    h = registry.health()
    assert h["status"] == "ok"
    assert h["pending"] == {}
    assert h["types"] == 4
    capability.enabled = False
    assert registry.health()["admin_changes"] is False


def test_capability_checked_before_payload(registry, capability, package_manager):
    capability.enabled = False
    with pytest.raises(CapabilityUnavailableError):
        asyncio.run(registry.install(None))
    with pytest.raises(CapabilityUnavailableError):
        registry.set_enabled("a-in", {"enabled": "bad"})
    with pytest.raises(CapabilityUnavailableError):
        asyncio.run(registry.uninstall(""))
    assert package_manager.install_calls == []


def test_payload_checked_before_identifier(registry):
    with pytest.raises(InvalidRequestError) as ei:
        registry.set_enabled("nope", {"enabled": "yes"})
    assert ei.value.context.get("errors")


def test_install_then_toggle_then_uninstall(registry, loader):
    out = asyncio.run(registry.install({"module": "foo"}, trace_id="t"))
    assert out["name"] == "foo"
    assert registry.set_enabled("foo-in", {"enabled": False})["enabled"] is False
    assert "foo-in" not in registry.get_all(OutputFormat.HTML)
    gone = asyncio.run(registry.uninstall("foo-out"))
    assert gone["types"] == ["foo-in", "foo-out"]
    assert loader.released == ["foo-in", "foo-out"]


def test_build_registry_wiring(config_manager):
    config_manager.save_file("registry.json", {"core_types": ["inject"]})
    config_manager.save_file("package_manager.json", {"check_index": False, "timeout_seconds": 42, "entry_point_group": "acme.nodes"})
    reg = build_registry(config_manager=config_manager, logger=L(), core={"inject": object()})
    assert isinstance(reg.loader, NodeLoader)
    assert reg.loader.group == "acme.nodes"
    assert isinstance(reg.package_manager, PipPackageManager)
    assert reg.package_manager.index is None
    assert reg.package_manager.timeout_seconds == 42
    assert reg.core_types == ["inject"]
    assert reg.validator.capability is config_manager
