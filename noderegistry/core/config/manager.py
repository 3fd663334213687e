from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import ValidationError

from noderegistry.core.config.io import JsonFileStore
from noderegistry.core.config.models import CONFIG_FILES, AppConfig, RegistryConfig
from noderegistry.core.config.paths import ConfigFsPaths
from noderegistry.core.errors import ConfigError


class ConfigManager:
    """
    Loads, validates and writes the JSON settings under <root>/config/.

    Also the host's capability provider: `available()` answers whether
    administrative registry changes are currently permitted.
    """

    def __init__(self, *, fs: Optional[ConfigFsPaths] = None, logger=None, read_only: bool = False, max_backups: int = 10):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = read_only
        self.store = JsonFileStore(
            config_dir=self.fs.config_dir,
            backups_dir=self.fs.backups_dir,
            last_known_good_dir=self.fs.last_known_good_dir,
            max_backups=max_backups,
        )
        self._cfg: Optional[AppConfig] = None

    # ---------- public API ----------
    def load_all(self) -> AppConfig:
        self.store.ensure_dirs()
        files = self._load_raw_files()
        ensured = self._ensure_defaults(files)
        cfg = self._validate_all(ensured)
        self._cfg = cfg

        if not self.read_only:
            self.store.snapshot_last_known_good(list(CONFIG_FILES))
        return cfg

    def get(self) -> AppConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def read_file(self, filename: str) -> Dict[str, Any]:
        data, _ = self.store.load(filename)
        return data

    def save_file(self, filename: str, data: Dict[str, Any]) -> None:
        """
        Validate one file, write it atomically, then reload the whole set.
        """
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        if filename not in CONFIG_FILES:
            raise ConfigError(f"Unknown config file: {filename}")
        if not isinstance(data, dict):
            raise ConfigError("Config data must be an object.")
        _section, model = CONFIG_FILES[filename]
        try:
            model.model_validate(data)
        except ValidationError as e:
            raise ConfigError(f"{filename} invalid.", errors=e.errors(include_url=False)) from e
        self.store.write(filename, data)
        self.load_all()

    def available(self) -> bool:
        """
        Capability flag: are administrative changes currently permitted?

        Re-reads registry.json on every call so an operator can restore the
        capability without restarting the host.
        """
        if self._cfg is None or self.read_only:
            return False
        raw = self.read_file("registry.json")
        try:
            reg = RegistryConfig.model_validate(raw) if raw else self._cfg.registry
        except ValidationError:
            if self.logger:
                self.logger.warning("registry.json invalid; administrative changes disabled.")
            return False
        return bool(reg.admin_changes_enabled)

    def set_admin_changes_enabled(self, enabled: bool) -> None:
        raw = dict(self.read_file("registry.json") or self.get().registry.model_dump())
        raw["admin_changes_enabled"] = bool(enabled)
        self.save_file("registry.json", raw)
        if self.logger:
            self.logger.info(f"Administrative changes {'enabled' if enabled else 'disabled'}.")

    # ---------- internals ----------
    def _load_raw_files(self) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for name in CONFIG_FILES:
            data, recovered = self.store.load(name)
            if recovered is not None and self.logger:
                self.logger.warning(f"Corrupt config {name} -> recovered={recovered}")
            # missing or unreadable: defaults later
            out[name] = data
        return out

    def _ensure_defaults(self, files: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
        out: Dict[str, Dict[str, Any]] = {}
        for name, (_section, model) in CONFIG_FILES.items():
            raw = files.get(name) or {}
            if raw:
                out[name] = raw
                continue
            defaults = model().model_dump()
            out[name] = defaults
            if not self.read_only:
                self.store.write(name, defaults)
        return out

    def _validate_all(self, files: Dict[str, Dict[str, Any]]) -> AppConfig:
        sections: Dict[str, Any] = {}
        for name, (section, model) in CONFIG_FILES.items():
            try:
                sections[section] = model.model_validate(files.get(name) or {})
            except ValidationError as e:
                raise ConfigError(f"{name} invalid.", errors=e.errors(include_url=False)) from e
        return AppConfig(**sections)


def get_config(*, root: str = ".", logger=None, read_only: bool = False) -> ConfigManager:
    cm = ConfigManager(fs=ConfigFsPaths(root), logger=logger, read_only=read_only)
    cm.load_all()
    return cm
