"""
Tests for device_detector - brightness interface discovery.

Tests cover:
- match_product_name() / match_ids() predicates
- get_predicate() strategy lookup
- find_device() with a mocked HidTransport
- detect_models() / list_candidates()
"""

from unittest.mock import MagicMock

import pytest

from ufbright.constants import LG_VENDOR_ID, MODEL_PROFILES, PRODUCT_NAME
from ufbright.device_detector import (
    DeviceOpenError,
    detect_models,
    find_device,
    get_predicate,
    list_candidates,
    match_ids,
    match_product_name,
)
from ufbright.hid_transport import DeviceDescriptor, DeviceHandle, HidTransport, TransportError

PROFILE = MODEL_PROFILES['27md5kl']


def _desc(pid=0x9A70, name=PRODUCT_NAME, vid=LG_VENDOR_ID, intf=1, path=None):
    return DeviceDescriptor(
        vendor_id=vid, product_id=pid, product_name=name,
        path=path or f"/dev/hidraw{intf}".encode(), interface_number=intf,
    )


def _make_mock_transport(descriptors) -> MagicMock:
    t = MagicMock(spec=HidTransport)
    t.name = "mock"
    t.list_devices.return_value = list(descriptors)
    t.open.side_effect = lambda desc: MagicMock(spec=DeviceHandle, descriptor=desc)
    return t


# =========================================================================
# Predicates
# =========================================================================

class TestMatchProductName:

    def test_exact_match(self):
        assert match_product_name(PROFILE)(_desc())

    def test_wrong_name(self):
        assert not match_product_name(PROFILE)(_desc(name="UltraFine Display Audio"))

    def test_name_is_case_sensitive(self):
        assert not match_product_name(PROFILE)(_desc(name="hid brightness"))

    def test_missing_name_never_matches(self):
        assert not match_product_name(PROFILE)(_desc(name=None))

    def test_wrong_product_id(self):
        assert not match_product_name(PROFILE)(_desc(pid=0x9A63))

    def test_wrong_vendor(self):
        assert not match_product_name(PROFILE)(_desc(vid=0x05AC))


class TestMatchIds:

    def test_ignores_name(self):
        assert match_ids(PROFILE)(_desc(name=None))
        assert match_ids(PROFILE)(_desc(name="Something else"))

    def test_checks_ids(self):
        assert not match_ids(PROFILE)(_desc(pid=0x9A40))


class TestGetPredicate:

    def test_known_strategies(self):
        assert get_predicate('name', PROFILE)(_desc())
        assert get_predicate('ids', PROFILE)(_desc(name=None))
        assert not get_predicate('name', PROFILE)(_desc(name=None))

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            get_predicate('fuzzy', PROFILE)


# =========================================================================
# find_device
# =========================================================================

class TestFindDevice:

    def test_filters_by_vendor(self):
        t = _make_mock_transport([_desc()])
        find_device(t, PROFILE)
        t.list_devices.assert_called_once_with(LG_VENDOR_ID)

    def test_opens_brightness_interface(self):
        target = _desc(intf=2)
        t = _make_mock_transport([
            _desc(name="UltraFine Display Camera", intf=0),
            _desc(name=None, intf=1),
            target,
        ])
        handle = find_device(t, PROFILE)
        assert handle is not None
        t.open.assert_called_once_with(target)

    def test_first_match_wins(self):
        first, second = _desc(intf=3), _desc(intf=4)
        t = _make_mock_transport([first, second])
        find_device(t, PROFILE)
        t.open.assert_called_once_with(first)

    def test_no_match_returns_none(self):
        t = _make_mock_transport([_desc(name="Other"), _desc(pid=0x9A63)])
        assert find_device(t, PROFILE) is None
        t.open.assert_not_called()

    def test_empty_registry(self):
        assert find_device(_make_mock_transport([]), PROFILE) is None

    def test_open_failure_is_fatal(self):
        t = _make_mock_transport([_desc()])
        t.open.side_effect = TransportError("permission denied")
        with pytest.raises(DeviceOpenError, match="permission denied"):
            find_device(t, PROFILE)

    def test_custom_predicate(self):
        target = _desc(name="HID BRIGHTNESS v2")
        t = _make_mock_transport([target])
        assert find_device(t, PROFILE) is None
        assert find_device(t, PROFILE, predicate=match_ids(PROFILE)) is not None

    def test_sibling_model(self):
        profile = MODEL_PROFILES['24md4kl']
        target = _desc(pid=0x9A63)
        t = _make_mock_transport([_desc(), target])
        find_device(t, profile)
        t.open.assert_called_once_with(target)


# =========================================================================
# detect_models / list_candidates
# =========================================================================

class TestDetectModels:

    def test_pairs_profiles_with_descriptors(self):
        t = _make_mock_transport([
            _desc(pid=0x9A70), _desc(pid=0x9A63), _desc(pid=0x9A70, name="Audio"),
        ])
        found = detect_models(t, MODEL_PROFILES.values())
        names = sorted(p.name for p, _ in found)
        assert names == ['24md4kl', '27md5kl']

    def test_enumerates_once_per_vendor(self):
        t = _make_mock_transport([])
        detect_models(t, MODEL_PROFILES.values())
        t.list_devices.assert_called_once_with(LG_VENDOR_ID)

    def test_never_opens(self):
        t = _make_mock_transport([_desc()])
        detect_models(t, MODEL_PROFILES.values())
        t.open.assert_not_called()

    def test_ids_strategy(self):
        t = _make_mock_transport([_desc(name=None)])
        assert detect_models(t, MODEL_PROFILES.values()) == []
        assert len(detect_models(t, MODEL_PROFILES.values(), strategy='ids')) == 1

    def test_list_candidates(self):
        descs = [_desc(), _desc(name="Audio")]
        t = _make_mock_transport(descs)
        assert list_candidates(t) == descs
        t.list_devices.assert_called_once_with(LG_VENDOR_ID)
