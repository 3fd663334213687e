from __future__ import annotations

from typing import Any, Optional

from pydantic import ValidationError

from noderegistry.core.errors import CapabilityUnavailableError, InvalidRequestError
from noderegistry.core.nodes.models import InstallRequest, SetEnabledRequest


class RequestValidator:
    """
    Gate for every mutating entry point: capability first, then payload shape.

    Never reads the catalog.
    """

    def __init__(self, *, capability: Any):
        # capability provider: anything with available() -> bool (ConfigManager in production)
        self.capability = capability

    def require_capability(self) -> None:
        available = getattr(self.capability, "available", None)
        if not callable(available) or not bool(available()):
            raise CapabilityUnavailableError()

    def validate_install(self, body: Any) -> InstallRequest:
        if not isinstance(body, dict):
            raise InvalidRequestError(reason="body must be an object")
        try:
            return InstallRequest.model_validate(body)
        except ValidationError as e:
            raise InvalidRequestError(errors=_safe_errors(e)) from e

    def validate_set_enabled(self, body: Any) -> bool:
        if not isinstance(body, dict):
            raise InvalidRequestError(reason="body must be an object")
        try:
            return bool(SetEnabledRequest.model_validate(body).enabled)
        except ValidationError as e:
            raise InvalidRequestError(errors=_safe_errors(e)) from e

    def validate_identifier(self, value: Optional[str]) -> str:
        ident = str(value or "").strip()
        if not ident:
            raise InvalidRequestError(reason="identifier required")
        return ident


def _safe_errors(e: ValidationError) -> list:
    return [{"loc": list(err.get("loc") or ()), "msg": str(err.get("msg") or "")} for err in e.errors(include_url=False)]
