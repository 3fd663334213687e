from __future__ import annotations

import asyncio
import os

import pytest

from noderegistry.core.config.manager import ConfigManager
from noderegistry.core.config.paths import ConfigFsPaths
from noderegistry.core.events import EventLogger
from noderegistry.core.nodes.service import NodeRegistry
from tests.helpers.fakes import FakeCapability, FakeLoader, FakePackageManager, L, package


@pytest.fixture
def tmp_config_root(tmp_path):
    """
    Isolated root with config/ under tmp_path.
    """
    fs = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(fs.config_dir, exist_ok=True)
    return fs


@pytest.fixture
def config_manager(tmp_config_root):
    cm = ConfigManager(fs=tmp_config_root, logger=L(), read_only=False)
    cm.load_all()
    return cm


@pytest.fixture
def event_logger(tmp_path):
    return EventLogger(str(tmp_path / "logs" / "events.jsonl"))


@pytest.fixture
def loader():
    return FakeLoader(core=["inject", "debug"])


@pytest.fixture
def package_manager():
    return FakePackageManager(
        installed=[package("node-red-contrib-a", "a-in", "a-out")],
        available={"foo": package("foo", "foo-in", "foo-out", version="2.1.0")},
    )


@pytest.fixture
def capability():
    return FakeCapability()


@pytest.fixture
def registry(capability, package_manager, loader, event_logger):
    reg = NodeRegistry(capability=capability, package_manager=package_manager, loader=loader, event_logger=event_logger, logger=L())
    asyncio.run(reg.start())
    return reg
