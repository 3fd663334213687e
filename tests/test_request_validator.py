from __future__ import annotations

import pytest

from noderegistry.core.errors import CapabilityUnavailableError, InvalidRequestError
from noderegistry.core.nodes.validator import RequestValidator
from tests.helpers.fakes import FakeCapability


def test_capability_gate():
    RequestValidator(capability=FakeCapability(enabled=True)).require_capability()
    with pytest.raises(CapabilityUnavailableError):
        RequestValidator(capability=FakeCapability(enabled=False)).require_capability()
    with pytest.raises(CapabilityUnavailableError):
        RequestValidator(capability=object()).require_capability()


def test_capability_is_asked_every_time():
    cap = FakeCapability()
    v = RequestValidator(capability=cap)
    v.require_capability()
    cap.enabled = False
    with pytest.raises(CapabilityUnavailableError):
        v.require_capability()
    assert cap.calls == 2


@pytest.mark.parametrize(
    "body",
    [None, [], "foo", {}, {"module": ""}, {"module": "   "}, {"module": 5}, {"file": None}, {"version": "1.0"}],
)
def test_install_body_rejected(body):
    with pytest.raises(InvalidRequestError) as ei:
        RequestValidator(capability=FakeCapability()).validate_install(body)
    assert ei.value.user_message == "Invalid request"


def test_install_body_accepted():
    v = RequestValidator(capability=FakeCapability())
    req = v.validate_install({"module": " foo ", "version": "1.2.0", "extra": True})
    assert req.module == "foo"
    assert req.version == "1.2.0"
    assert req.ref == "foo"
    assert v.validate_install({"file": "/tmp/foo-1.0.whl"}).ref == "/tmp/foo-1.0.whl"


@pytest.mark.parametrize("body", [None, {}, {"enabled": "true"}, {"enabled": 1}, {"enabled": None}, ["enabled"]])
def test_set_enabled_body_rejected(body):
    with pytest.raises(InvalidRequestError):
        RequestValidator(capability=FakeCapability()).validate_set_enabled(body)


def test_set_enabled_body_accepted():
    v = RequestValidator(capability=FakeCapability())
    assert v.validate_set_enabled({"enabled": True}) is True
    assert v.validate_set_enabled({"enabled": False}) is False


def test_identifier_required():
    v = RequestValidator(capability=FakeCapability())
    assert v.validate_identifier(" foo ") == "foo"
    for bad in (None, "", "  "):
        with pytest.raises(InvalidRequestError):
            v.validate_identifier(bad)
