from __future__ import annotations

import pytest

from noderegistry.core.errors import AlreadyInstalledError, InstallFailedError, NotInstalledError, UnknownTypeError
from noderegistry.core.nodes.catalog import NodeCatalog
from noderegistry.core.nodes.models import ModuleState, NodeTypeSpec
from tests.helpers.fakes import package


def _seeded() -> NodeCatalog:
    cat = NodeCatalog()
    cat.seed(
        [package("node-red-contrib-a", "a-in", "a-out"), package("node-red-contrib-b", "b-one", errors={"b-one": "ImportError: boom"})],
        [NodeTypeSpec(id="inject", config="<inject/>")],
    )
    return cat


def test_seed_registers_modules_and_core_types():
    cat = _seeded()
    assert {t.id for t in cat.list()} == {"inject", "a-in", "a-out", "b-one"}
    assert cat.get("inject").module is None
    assert cat.get("a-in").module == "node-red-contrib-a"
    m = cat.get_module("node-red-contrib-a")
    assert m.state == ModuleState.INSTALLED
    assert m.types == ["a-in", "a-out"]
    assert cat.get("b-one").err == "ImportError: boom"
    assert cat.counts() == {"modules": 2, "types": 4, "enabled": 4, "errored": 1}


def test_seed_drops_duplicate_type_ids_from_later_modules():
    cat = NodeCatalog()
    cat.seed([package("first", "shared"), package("second", "shared", "own")])
    assert cat.get("shared").module == "first"
    assert cat.get_module("second").types == ["own"]


def test_reads_return_copies():
    cat = _seeded()
    node = cat.get("a-in")
    node.enabled = False
    node.info["help"] = "changed"
    again = cat.get("a-in")
    assert again.enabled is True
    assert again.info["help"] == "a-in"


def test_find_module_by_module_id_or_type_id():
    cat = _seeded()
    assert cat.find_module("node-red-contrib-a").id == "node-red-contrib-a"
    assert cat.find_module("a-out").id == "node-red-contrib-a"
    assert cat.find_module("inject") is None
    assert cat.find_module("nope") is None


def test_find_module_prefers_module_namespace():
    cat = NodeCatalog()
    cat.seed([package("clash", "x"), package("other", "clash")])
    assert cat.find_module("clash").id == "clash"


def test_apply_install_adds_module_and_types():
    cat = _seeded()
    m = cat.apply_install("foo", [NodeTypeSpec(id="foo-in"), NodeTypeSpec(id="foo-in", config="<dup/>"), NodeTypeSpec(id="foo-out")], "2.0.0")
    assert m.types == ["foo-in", "foo-out"]
    assert m.version == "2.0.0"
    assert cat.get("foo-in").config == "<dup/>"
    assert cat.get("foo-in").enabled is True


def test_apply_install_rejects_existing_module():
    cat = _seeded()
    with pytest.raises(AlreadyInstalledError):
        cat.apply_install("node-red-contrib-a", [NodeTypeSpec(id="a-new")])
    assert cat.get("a-new") is None


def test_apply_install_rejects_type_owned_by_another_module():
    cat = _seeded()
    before = cat.counts()
    with pytest.raises(InstallFailedError) as ei:
        cat.apply_install("thief", [NodeTypeSpec(id="fresh"), NodeTypeSpec(id="a-in")])
    assert "a-in" in ei.value.user_message
    assert cat.get_module("thief") is None
    assert cat.get("fresh") is None
    assert cat.counts() == before


def test_apply_uninstall_removes_module_and_its_types():
    cat = _seeded()
    removed = cat.apply_uninstall("node-red-contrib-a")
    assert removed == ["a-in", "a-out"]
    assert cat.get_module("node-red-contrib-a") is None
    assert cat.get("a-in") is None
    assert cat.get("inject") is not None
    with pytest.raises(NotInstalledError):
        cat.apply_uninstall("node-red-contrib-a")


def test_set_enabled_updates_flag_and_error():
    cat = _seeded()
    node = cat.set_enabled("b-one", True, err="", config="<b/>", info={"help": "fixed"})
    assert node.err == ""
    assert node.config == "<b/>"
    assert cat.get("b-one").info == {"help": "fixed"}
    off = cat.set_enabled("a-in", False)
    assert off.enabled is False
    with pytest.raises(UnknownTypeError):
        cat.set_enabled("missing", True)


def test_snapshot_taken_before_mutation_is_unaffected():
    cat = _seeded()
    listed = cat.list()
    cat.apply_uninstall("node-red-contrib-a")
    assert "a-in" in {t.id for t in listed}
    assert cat.types_of("node-red-contrib-a") == []
