"""Test device descriptor and model lookup."""

from types import SimpleNamespace

import pytest

from apdu_ble.models import DeviceDescriptor, get_device_model, get_service_uuids
from apdu_ble.models.enums import SessionState


def test_get_device_model_case_insensitive():
    model = get_device_model("13D63400-2C97-0004-0000-4C6564676572")
    assert model is not None
    assert model.id == "nanoX"
    assert model.write_uuid.endswith("0002-4c6564676572")


def test_get_device_model_unknown():
    assert get_device_model("0000180f-0000-1000-8000-00805f9b34fb") is None


def test_service_uuids_cover_all_models():
    assert "d973f2e0-b19e-11e2-9e96-0800200c9a66" in get_service_uuids()


def test_from_advertisement_falls_back_to_device_name():
    device = SimpleNamespace(address="AA", name="Nano X")
    advertisement = SimpleNamespace(local_name=None, service_uuids=[])

    descriptor = DeviceDescriptor.from_advertisement(device, advertisement)

    assert descriptor.name == "Nano X"
    assert descriptor.service_uuid is None
    assert descriptor.model is None
    assert descriptor.ble_device is device


def test_descriptor_equality_ignores_ble_device():
    assert DeviceDescriptor("AA", "x", ble_device=object()) == DeviceDescriptor("AA", "x")


@pytest.mark.parametrize(
    ("name", "usable"),
    [("Nano X", True), (None, False), ("", False), ("unknown", False), ("UNKNOWN", False)],
)
def test_has_usable_name(name, usable):
    assert DeviceDescriptor("AA", name).has_usable_name is usable


def test_terminal_states():
    assert SessionState.DISCONNECTED.is_terminal
    assert SessionState.CLOSED.is_terminal
    assert not SessionState.EXCHANGING.is_terminal
