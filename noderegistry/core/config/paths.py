from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class ConfigFsPaths:
    root: str = "."

    @property
    def config_dir(self) -> str:
        return os.path.join(self.root, "config")

    @property
    def backups_dir(self) -> str:
        return os.path.join(self.config_dir, "backups")

    @property
    def last_known_good_dir(self) -> str:
        return os.path.join(self.backups_dir, "last_known_good")

    # Files
    @property
    def registry(self) -> str:
        return os.path.join(self.config_dir, "registry.json")

    @property
    def package_manager(self) -> str:
        return os.path.join(self.config_dir, "package_manager.json")

    @property
    def web(self) -> str:
        return os.path.join(self.config_dir, "web.json")

    @property
    def logging(self) -> str:
        return os.path.join(self.config_dir, "logging.json")
