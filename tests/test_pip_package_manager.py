from __future__ import annotations

import asyncio
from typing import List, Optional, Set

import pytest
import requests

from noderegistry.core.nodes.models import NodeTypeSpec, PackageInfo
from noderegistry.core.nodes.package_manager import (
    PackageIndex,
    PackageManagerError,
    PackageStatus,
    PipPackageManager,
    classify_pip_output,
    installed_names_from_output,
    pip_error_message,
)
from tests.helpers.fakes import L


class _Loader:
    """Pretends pip changed the installed set when `after` is consulted."""

    def __init__(self, before: Set[str], after: Set[str], info: Optional[PackageInfo] = None):
        self.before = before
        self.after = after
        self.info = info
        self.calls = 0

    def distribution_names(self) -> Set[str]:
        self.calls += 1
        return set(self.before if self.calls == 1 else self.after)

    def inspect(self, name: str) -> Optional[PackageInfo]:
        return self.info

    def scan(self) -> List[PackageInfo]:
        return [self.info] if self.info else []


class _Index:
    def __init__(self, answer: Optional[bool]):
        self.answer = answer
        self.asked: List[tuple] = []

    def exists(self, name, version=None):  # noqa: ANN001
        self.asked.append((name, version))
        return self.answer


def _pm(loader, *, index=None, runs=None):
    pm = PipPackageManager(loader=loader, python="python", timeout_seconds=5, index=index, logger=L())
    calls: List[tuple] = []
    queue = list(runs or [])

    async def fake_run(*args):
        calls.append(args)
        return queue.pop(0) if queue else (0, "Successfully installed foo-1.0")

    pm._run = fake_run
    return pm, calls


FOO = PackageInfo(name="foo", version="1.0", types=[NodeTypeSpec(id="foo-in")])


def test_classify_pip_output():
    assert classify_pip_output("ERROR: No matching distribution found for nope") == PackageStatus.NOT_FOUND
    assert classify_pip_output("ERROR: Could not find a version that satisfies the requirement x==9") == PackageStatus.NOT_FOUND
    assert classify_pip_output("ERROR: Failed building wheel for foo") == PackageStatus.FAILED
    assert classify_pip_output("") == PackageStatus.FAILED


def test_pip_error_message_keeps_last_error_line():
    out = "Collecting foo\nERROR: first\nsome noise\nERROR: Failed building wheel for foo\n"
    assert pip_error_message(out, default="x") == "ERROR: Failed building wheel for foo"
    assert pip_error_message("just text\nlast line\n", default="x") == "last line"
    assert pip_error_message("", default="pip failed") == "pip failed"


def test_installed_names_from_output():
    assert installed_names_from_output("Successfully installed My_Pack-1.2.0 dep.two-0.1") == ["my-pack", "dep-two"]
    assert installed_names_from_output("nothing here") == []


def test_install_by_name():
    pm, calls = _pm(_Loader(set(), {"foo"}, FOO))
    info = asyncio.run(pm.install("foo", version="1.0"))
    assert info.name == "foo"
    assert calls[0][:3] == ("install", "--no-input", "foo==1.0")


def test_install_rejected_by_index_never_runs_pip():
    index = _Index(False)
    pm, calls = _pm(_Loader(set(), set()), index=index)
    with pytest.raises(PackageManagerError) as ei:
        asyncio.run(pm.install("nope"))
    assert ei.value.status == PackageStatus.NOT_FOUND
    assert calls == []
    assert index.asked == [("nope", None)]


def test_install_proceeds_when_index_unreachable():
    pm, calls = _pm(_Loader(set(), {"foo"}, FOO), index=_Index(None))
    assert asyncio.run(pm.install("foo")).name == "foo"
    assert len(calls) == 1


def test_install_pip_failure_is_classified():
    runs = [(1, "Collecting nope\nERROR: No matching distribution found for nope\n")]
    pm, _calls = _pm(_Loader(set(), set()), runs=runs)
    with pytest.raises(PackageManagerError) as ei:
        asyncio.run(pm.install("nope"))
    assert ei.value.status == PackageStatus.NOT_FOUND
    assert ei.value.message == "ERROR: No matching distribution found for nope"


def test_install_without_node_types_fails():
    empty = PackageInfo(name="foo", version="1.0", types=[])
    pm, _calls = _pm(_Loader(set(), {"foo"}, empty))
    with pytest.raises(PackageManagerError) as ei:
        asyncio.run(pm.install("foo"))
    assert ei.value.status == PackageStatus.FAILED


def test_install_from_url_resolves_new_distribution():
    pm, calls = _pm(_Loader({"other"}, {"other", "foo"}, FOO), index=_Index(False))
    info = asyncio.run(pm.install("https://example.invalid/foo-1.0.tar.gz", version="9"))
    assert info.name == "foo"
    assert calls[0][2] == "https://example.invalid/foo-1.0.tar.gz"


def test_uninstall_failure():
    pm, calls = _pm(_Loader(set(), set(), FOO), runs=[(1, "ERROR: Cannot uninstall foo")])
    with pytest.raises(PackageManagerError) as ei:
        asyncio.run(pm.uninstall("foo"))
    assert ei.value.message == "ERROR: Cannot uninstall foo"
    assert calls[0][:3] == ("uninstall", "--yes", "foo")


def test_installed_scans_loader():
    pm, _calls = _pm(_Loader(set(), set(), FOO))
    assert [p.name for p in asyncio.run(pm.installed())] == ["foo"]


def test_run_times_out(monkeypatch):
    class _Proc:
        returncode = None
        killed = False

        async def communicate(self):
            await asyncio.sleep(10)

        def kill(self):
            _Proc.killed = True

        async def wait(self):
            return -9

    async def fake_exec(*_a, **_k):
        return _Proc()

    monkeypatch.setattr(asyncio, "create_subprocess_exec", fake_exec)
    pm = PipPackageManager(loader=_Loader(set(), set()), python="python", timeout_seconds=0.05)
    with pytest.raises(PackageManagerError) as ei:
        asyncio.run(pm._run("install", "foo"))
    assert ei.value.status == PackageStatus.TIMEOUT
    assert _Proc.killed is True


class _Resp:
    def __init__(self, status_code: int):
        self.status_code = status_code


class _Session:
    def __init__(self, status: Optional[int]):
        self.status = status
        self.urls: List[str] = []

    def get(self, url, timeout=None):  # noqa: ANN001
        self.urls.append(url)
        if self.status is None:
            raise requests.ConnectionError("offline")
        return _Resp(self.status)


def test_package_index_answers():
    s = _Session(200)
    idx = PackageIndex(index_url="https://index.example/pypi/", session=s)
    assert idx.exists("My_Pack") is True
    assert idx.exists("My_Pack", "1.0") is True
    assert s.urls == ["https://index.example/pypi/my-pack/json", "https://index.example/pypi/my-pack/1.0/json"]
    assert PackageIndex(session=_Session(404)).exists("x") is False
    assert PackageIndex(session=_Session(503)).exists("x") is None
    assert PackageIndex(session=_Session(None)).exists("x") is None
