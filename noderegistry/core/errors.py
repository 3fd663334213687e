from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from noderegistry.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class Outcome(str, Enum):
    """
    How a caller should answer an error. The transport maps these to status codes.
    """

    NOT_FOUND = "not_found"
    CLIENT_ERROR = "client_error"
    CONFLICT = "conflict"
    SERVER_ERROR = "server_error"


@dataclass
class NodeRegistryError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    outcome: Outcome = Outcome.SERVER_ERROR
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.code)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "outcome": self.outcome.value,
            "context": redact(self.context or {}),
        }


# ---- Request gate ----
class CapabilityUnavailableError(NodeRegistryError):
    def __init__(self, user_message: str = "Administrative changes are not permitted right now.", **ctx: Any):
        super().__init__("capability_unavailable", user_message, severity=Severity.WARN, recoverable=True, outcome=Outcome.CLIENT_ERROR, context=ctx)


class InvalidRequestError(NodeRegistryError):
    def __init__(self, user_message: str = "Invalid request", **ctx: Any):
        super().__init__("invalid_request", user_message, severity=Severity.WARN, recoverable=False, outcome=Outcome.CLIENT_ERROR, context=ctx)


# ---- Catalog lookups ----
class UnknownTypeError(NodeRegistryError):
    def __init__(self, user_message: str = "Unknown node type.", **ctx: Any):
        super().__init__("unknown_type", user_message, severity=Severity.INFO, recoverable=False, outcome=Outcome.NOT_FOUND, context=ctx)


class NotInstalledError(NodeRegistryError):
    def __init__(self, user_message: str = "Module is not installed.", **ctx: Any):
        super().__init__("not_installed", user_message, severity=Severity.INFO, recoverable=False, outcome=Outcome.NOT_FOUND, context=ctx)


class AlreadyInstalledError(NodeRegistryError):
    def __init__(self, user_message: str = "Module is already installed.", **ctx: Any):
        super().__init__("already_installed", user_message, severity=Severity.INFO, recoverable=False, outcome=Outcome.CLIENT_ERROR, context=ctx)


# ---- Package manager outcomes ----
class NodeModuleNotFoundError(NodeRegistryError):
    def __init__(self, user_message: str = "Module not found.", **ctx: Any):
        super().__init__("module_not_found", user_message, severity=Severity.WARN, recoverable=False, outcome=Outcome.NOT_FOUND, context=ctx)


class InstallFailedError(NodeRegistryError):
    def __init__(self, user_message: str = "Install failed.", **ctx: Any):
        super().__init__("install_failed", user_message, severity=Severity.ERROR, recoverable=True, outcome=Outcome.CLIENT_ERROR, context=ctx)


class UninstallFailedError(NodeRegistryError):
    def __init__(self, user_message: str = "Uninstall failed.", **ctx: Any):
        super().__init__("uninstall_failed", user_message, severity=Severity.ERROR, recoverable=True, outcome=Outcome.CLIENT_ERROR, context=ctx)


class OperationInProgressError(NodeRegistryError):
    def __init__(self, user_message: str = "Another install or uninstall of this module is in progress.", **ctx: Any):
        super().__init__("operation_in_progress", user_message, severity=Severity.WARN, recoverable=True, outcome=Outcome.CONFLICT, context=ctx)


# ---- Settings ----
class ConfigError(NodeRegistryError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, outcome=Outcome.SERVER_ERROR, context=ctx)


HTTP_STATUS_BY_OUTCOME: Dict[Outcome, int] = {
    Outcome.NOT_FOUND: 404,
    Outcome.CLIENT_ERROR: 400,
    Outcome.CONFLICT: 409,
    Outcome.SERVER_ERROR: 500,
}


def http_status_for(err: NodeRegistryError) -> int:
    return HTTP_STATUS_BY_OUTCOME.get(err.outcome, 500)
