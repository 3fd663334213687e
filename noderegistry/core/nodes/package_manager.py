from __future__ import annotations

"""
Package manager collaborators.

PackageManager is the contract the orchestrator consumes. PipPackageManager
implements it by running `python -m pip` in a subprocess and asking the
NodeLoader what the installed distribution contributes.
"""

import asyncio
import os
import re
import sys
from enum import Enum
from typing import Any, List, Optional, Protocol, Sequence, Tuple

import requests

from noderegistry.core.nodes.loader import NodeLoader, canonical_name
from noderegistry.core.nodes.models import PackageInfo


class PackageStatus(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    FAILED = "FAILED"
    TIMEOUT = "TIMEOUT"


class PackageManagerError(Exception):
    def __init__(self, status: PackageStatus, message: str):
        super().__init__(message)
        self.status = PackageStatus(status)
        self.message = str(message)


class PackageManager(Protocol):
    async def installed(self) -> List[PackageInfo]: ...

    async def install(self, ref: str, *, version: Optional[str] = None) -> PackageInfo: ...

    async def uninstall(self, module_id: str) -> PackageInfo: ...


_NOT_FOUND_PATTERNS = (
    re.compile(r"No matching distribution found", re.IGNORECASE),
    re.compile(r"Could not find a version that satisfies", re.IGNORECASE),
    re.compile(r"\b404\b.*Not Found", re.IGNORECASE),
    re.compile(r"does not exist", re.IGNORECASE),
)
_SUCCESS_LINE = re.compile(r"^Successfully installed (.+)$", re.MULTILINE)


def classify_pip_output(output: str) -> PackageStatus:
    for pat in _NOT_FOUND_PATTERNS:
        if pat.search(output or ""):
            return PackageStatus.NOT_FOUND
    return PackageStatus.FAILED


def pip_error_message(output: str, *, default: str) -> str:
    """
    Last ERROR line pip printed, verbatim; else the last non-empty line.
    """
    lines = [ln.strip() for ln in (output or "").splitlines() if ln.strip()]
    errors = [ln for ln in lines if ln.startswith("ERROR:")]
    if errors:
        return errors[-1]
    return lines[-1] if lines else default


def installed_names_from_output(output: str) -> List[str]:
    """
    Project names from pip's "Successfully installed a-1.0 b-2.0" line.
    """
    m = _SUCCESS_LINE.search(output or "")
    if not m:
        return []
    out: List[str] = []
    for item in m.group(1).split():
        name, _, _ver = item.rpartition("-")
        out.append(canonical_name(name or item))
    return out


class PackageIndex:
    """
    Existence check against a PyPI-compatible JSON API (GET <index>/<name>/json).
    """

    def __init__(self, *, index_url: str = "https://pypi.org/pypi", timeout_seconds: float = 10.0, session: Optional[requests.Session] = None):
        self.index_url = str(index_url).rstrip("/")
        self.timeout_seconds = float(timeout_seconds)
        self.session = session or requests.Session()

    def exists(self, name: str, version: Optional[str] = None) -> Optional[bool]:
        """
        True/False when the index answered; None when it could not be asked.
        """
        url = f"{self.index_url}/{canonical_name(name)}/json" if not version else f"{self.index_url}/{canonical_name(name)}/{version}/json"
        try:
            resp = self.session.get(url, timeout=self.timeout_seconds)
        except requests.RequestException:
            return None
        if resp.status_code == 404:
            return False
        if resp.status_code == 200:
            return True
        return None


def _looks_like_project_name(ref: str) -> bool:
    return bool(re.fullmatch(r"[A-Za-z0-9][A-Za-z0-9._-]*", ref or ""))


class PipPackageManager:
    def __init__(
        self,
        *,
        loader: NodeLoader,
        python: str = "",
        timeout_seconds: float = 300.0,
        extra_args: Sequence[str] = (),
        index: Optional[PackageIndex] = None,
        logger: Any = None,
    ):
        self.loader = loader
        self.python = python or sys.executable
        self.timeout_seconds = float(timeout_seconds)
        self.extra_args = list(extra_args or [])
        self.index = index
        self.logger = logger

    async def installed(self) -> List[PackageInfo]:
        return await asyncio.to_thread(self.loader.scan)

    async def install(self, ref: str, *, version: Optional[str] = None) -> PackageInfo:
        ref = str(ref or "").strip()
        is_file = os.path.exists(ref) or "://" in ref
        if not is_file and _looks_like_project_name(ref) and self.index is not None:
            found = await asyncio.to_thread(self.index.exists, ref, version)
            if found is False:
                raise PackageManagerError(PackageStatus.NOT_FOUND, f"Module {ref}{'@' + version if version else ''} not found in package index.")

        target = f"{ref}=={version}" if (version and not is_file) else ref
        before = await asyncio.to_thread(self.loader.distribution_names)
        code, output = await self._run("install", "--no-input", target)
        if code != 0:
            raise PackageManagerError(classify_pip_output(output), pip_error_message(output, default=f"pip install exited with {code}"))

        name = self._resolve_installed_name(ref, is_file=is_file, before=before, after=await asyncio.to_thread(self.loader.distribution_names), output=output)
        if name is None:
            raise PackageManagerError(PackageStatus.FAILED, f"Package {ref} does not provide any node types.")
        info = await asyncio.to_thread(self.loader.inspect, name)
        if info is None or not info.types:
            raise PackageManagerError(PackageStatus.FAILED, f"Package {ref} does not provide any node types.")
        if self.logger:
            self.logger.info(f"Installed {info.name} {info.version} ({len(info.types)} node types)")
        return info

    async def uninstall(self, module_id: str) -> PackageInfo:
        info = await asyncio.to_thread(self.loader.inspect, module_id)
        code, output = await self._run("uninstall", "--yes", module_id)
        if code != 0:
            raise PackageManagerError(classify_pip_output(output), pip_error_message(output, default=f"pip uninstall exited with {code}"))
        if self.logger:
            self.logger.info(f"Uninstalled {module_id}")
        return info or PackageInfo(name=canonical_name(module_id))

    def _resolve_installed_name(self, ref: str, *, is_file: bool, before: set, after: set, output: str) -> Optional[str]:
        if not is_file:
            name = canonical_name(ref)
            return name if name in after else None
        new = sorted(after - before)
        if new:
            return new[0]
        for name in installed_names_from_output(output):
            if name in after:
                return name
        return None

    async def _run(self, *args: str) -> Tuple[int, str]:
        cmd = [self.python, "-m", "pip", *args, "--disable-pip-version-check", *self.extra_args]
        if self.logger:
            self.logger.info("pip: " + " ".join(args))
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise PackageManagerError(PackageStatus.TIMEOUT, f"pip {args[0]} timed out after {int(self.timeout_seconds)}s")
        return int(proc.returncode or 0), (out or b"").decode("utf-8", errors="replace")
