"""Test the session registry."""

import pytest

from apdu_ble.exceptions import DeviceDisconnected
from apdu_ble.registry import SessionRegistry
from apdu_ble.session import Session


def test_put_get_remove(connected_link):
    registry = SessionRegistry()
    session = Session("AA", connected_link)

    registry.put(session)

    assert registry.get("AA") is session
    assert "AA" in registry
    assert len(registry) == 1
    assert registry.remove("AA") is True
    assert registry.get("AA") is None
    assert registry.remove("AA") is False


def test_only_one_live_session_per_device(connected_link):
    registry = SessionRegistry()
    registry.put(Session("AA", connected_link))

    with pytest.raises(ValueError, match="already has a live session"):
        registry.put(Session("AA", connected_link))


def test_dead_session_can_be_replaced(connected_link):
    registry = SessionRegistry()
    old = Session("AA", connected_link)
    registry.put(old)
    old.mark_disconnected()

    new = Session("AA", connected_link)
    registry.put(new)

    assert registry.get("AA") is new


def test_remove_ignores_other_instance(connected_link):
    """A stale teardown does not evict a newer session."""
    registry = SessionRegistry()
    old = Session("AA", connected_link)
    new = Session("AA", connected_link)
    registry.put(new)

    assert registry.remove("AA", old) is False
    assert registry.get("AA") is new


def test_open_returns_live_session(connected_link):
    registry = SessionRegistry()
    session = Session("AA", connected_link)
    registry.put(session)

    assert registry.open("AA") is session


def test_open_unknown_id():
    with pytest.raises(DeviceDisconnected, match="No live session for BB"):
        SessionRegistry().open("BB")


def test_open_dead_session(connected_link):
    registry = SessionRegistry()
    session = Session("AA", connected_link)
    registry.put(session)
    session.mark_disconnected()

    with pytest.raises(DeviceDisconnected):
        registry.open("AA")
