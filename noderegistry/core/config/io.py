from __future__ import annotations

import json
import os
import shutil
import tempfile
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ReadResult:
    ok: bool
    data: Dict[str, Any]
    error: Optional[str] = None

    @property
    def corrupt(self) -> bool:
        return bool(self.error and self.error.startswith("corrupt_json"))


def _ts() -> str:
    return time.strftime("%Y%m%d_%H%M%S", time.gmtime())


def read_json_file(path: str) -> ReadResult:
    if not os.path.exists(path):
        return ReadResult(ok=False, data={}, error="missing")
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except json.JSONDecodeError as e:
        return ReadResult(ok=False, data={}, error=f"corrupt_json:{e}")
    except OSError as e:
        return ReadResult(ok=False, data={}, error=str(e))
    if not isinstance(obj, dict):
        return ReadResult(ok=False, data={}, error="not_object")
    return ReadResult(ok=True, data=obj)


class JsonFileStore:
    """
    The config/ directory: one JSON object per file.

    Writes are atomic and keep a bounded number of timestamped backups per file.
    A corrupt file is moved aside and replaced by its last-known-good copy.
    """

    def __init__(self, *, config_dir: str, backups_dir: str, last_known_good_dir: str, max_backups: int = 10):
        self.config_dir = config_dir
        self.backups_dir = backups_dir
        self.last_known_good_dir = last_known_good_dir
        self.max_backups = int(max_backups)

    def ensure_dirs(self) -> None:
        for d in (self.config_dir, self.backups_dir, self.last_known_good_dir):
            os.makedirs(d, exist_ok=True)

    def path(self, filename: str) -> str:
        return os.path.join(self.config_dir, filename)

    def read(self, filename: str) -> ReadResult:
        return read_json_file(self.path(filename))

    def load(self, filename: str) -> tuple[Dict[str, Any], Optional[bool]]:
        """
        File contents, or {} when missing. The second value is None for a clean
        read, else whether a corrupt file could be restored.
        """
        rr = self.read(filename)
        if rr.ok:
            return rr.data, None
        if rr.corrupt:
            return self.recover(filename)
        return {}, None

    def write(self, filename: str, data: Dict[str, Any]) -> None:
        path = self.path(filename)
        self.ensure_dirs()
        self.backup(filename, reason="prewrite")
        fd, tmp = tempfile.mkstemp(prefix=".tmp_", suffix=".json", dir=self.config_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)
                f.write("\n")
            os.replace(tmp, path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    def backup(self, filename: str, *, reason: str) -> Optional[str]:
        path = self.path(filename)
        if not os.path.exists(path):
            return None
        out = os.path.join(self.backups_dir, f"{filename}.{_ts()}.{reason}.json")
        shutil.copy2(path, out)
        self._prune(filename)
        return out

    def backups_of(self, filename: str) -> List[str]:
        prefix = f"{filename}."
        items = [os.path.join(self.backups_dir, f) for f in os.listdir(self.backups_dir) if f.startswith(prefix)]
        items.sort(key=lambda p: os.path.getmtime(p), reverse=True)
        return items

    def _prune(self, filename: str) -> None:
        for p in self.backups_of(filename)[self.max_backups :]:
            try:
                os.remove(p)
            except OSError:
                pass

    def recover(self, filename: str) -> tuple[Dict[str, Any], bool]:
        self.ensure_dirs()
        path = self.path(filename)
        if os.path.exists(path):
            shutil.move(path, os.path.join(self.backups_dir, f"{filename}.{_ts()}.corrupt.json"))
        rr = read_json_file(os.path.join(self.last_known_good_dir, filename))
        if rr.ok:
            self.write(filename, rr.data)
            return rr.data, True
        return {}, False

    def snapshot_last_known_good(self, filenames: List[str]) -> None:
        os.makedirs(self.last_known_good_dir, exist_ok=True)
        for name in filenames:
            src = self.path(name)
            if os.path.isfile(src):
                shutil.copy2(src, os.path.join(self.last_known_good_dir, name))
