"""Mock tests for the brightness feature report codec.

No real USB hardware required; all I/O goes through a mocked DeviceHandle.
"""

from unittest.mock import MagicMock

import pytest

from ufbright.constants import MODEL_PROFILES, REPORT_ID, REPORT_SIZE
from ufbright.hid_transport import DeviceHandle, TransportError
from ufbright.protocol import (
    BrightnessDevice,
    BrightnessReadError,
    BrightnessWriteError,
    decode_report,
    encode_report,
    read_brightness,
    write_brightness,
)
from ufbright.steps import ULTRAFINE_STEPS

PROFILE = MODEL_PROFILES['27md5kl']


def _make_mock_handle(report: bytes = b'\x00' * REPORT_SIZE) -> MagicMock:
    """Create a MagicMock that satisfies the DeviceHandle interface."""
    h = MagicMock(spec=DeviceHandle)
    h.get_feature_report.return_value = report
    h.send_feature_report.return_value = REPORT_SIZE
    return h


# =========================================================================
# Codec
# =========================================================================

class TestEncodeReport:

    def test_layout(self):
        assert encode_report(29700) == bytes([0x00, 0x04, 0x74, 0, 0, 0, 0])

    def test_length(self):
        assert len(encode_report(540)) == REPORT_SIZE

    def test_little_endian(self):
        report = encode_report(0xD2F0)
        assert report[1] == 0xF0
        assert report[2] == 0xD2

    def test_reserved_bytes_zero(self):
        assert encode_report(0xFFFF)[3:] == b'\x00' * 4

    def test_report_id_placeholder(self):
        assert encode_report(54000)[0] == REPORT_ID == 0

    def test_out_of_range(self):
        with pytest.raises(ValueError):
            encode_report(0x10000)
        with pytest.raises(ValueError):
            encode_report(-1)


class TestDecodeReport:

    def test_decode(self):
        assert decode_report(bytes([0, 0x00, 0x02, 0, 0, 0, 0])) == 0x0200

    def test_ignores_reserved_bytes(self):
        assert decode_report(bytes([0, 0x1C, 0x02, 9, 9, 9, 9])) == 540

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            decode_report(b'\x00\x1c\x02')

    def test_round_trip_every_step(self):
        for step in ULTRAFINE_STEPS:
            assert decode_report(encode_report(step)) == step


# =========================================================================
# read_brightness
# =========================================================================

class TestReadBrightness:

    def test_reads_seven_byte_report(self):
        h = _make_mock_handle(bytes([0, 0x04, 0x74, 0, 0, 0, 0]))
        assert read_brightness(h) == 29700
        h.get_feature_report.assert_called_once_with(REPORT_ID, REPORT_SIZE)

    def test_transport_failure_raises(self):
        h = _make_mock_handle()
        h.get_feature_report.side_effect = TransportError("pipe error")
        with pytest.raises(BrightnessReadError):
            read_brightness(h)

    def test_short_report_raises(self):
        h = _make_mock_handle(b'\x00\x04')
        with pytest.raises(BrightnessReadError):
            read_brightness(h)

    def test_read_error_is_transport_error(self):
        assert issubclass(BrightnessReadError, TransportError)


# =========================================================================
# write_brightness
# =========================================================================

class TestWriteBrightness:

    def test_writes_valid_step(self):
        h = _make_mock_handle()
        assert write_brightness(h, 29700, ULTRAFINE_STEPS) is True
        h.send_feature_report.assert_called_once_with(
            bytes([0, 0x04, 0x74, 0, 0, 0, 0]))

    @pytest.mark.parametrize('value', [0, 400, 541, 27270, 54001, 0xFFFF])
    def test_invalid_step_no_io(self, value):
        h = _make_mock_handle()
        assert write_brightness(h, value, ULTRAFINE_STEPS) is False
        h.send_feature_report.assert_not_called()

    def test_transport_failure_raises(self):
        h = _make_mock_handle()
        h.send_feature_report.side_effect = TransportError("timeout")
        with pytest.raises(BrightnessWriteError):
            write_brightness(h, 540, ULTRAFINE_STEPS)

    def test_short_write_raises(self):
        h = _make_mock_handle()
        h.send_feature_report.return_value = 3
        with pytest.raises(BrightnessWriteError):
            write_brightness(h, 540, ULTRAFINE_STEPS)


# =========================================================================
# BrightnessDevice
# =========================================================================

class TestBrightnessDevice:

    def test_read_step_quantizes(self):
        h = _make_mock_handle(bytes([0, 0x00, 0x02, 0, 0, 0, 0]))
        device = BrightnessDevice(h, PROFILE)
        assert device.read_raw() == 0x0200
        assert device.read_step() == 540
        assert device.percent() == 1

    def test_percent_of_given_step(self):
        device = BrightnessDevice(_make_mock_handle(), PROFILE)
        assert device.percent(27000) == 50

    def test_set_percent(self):
        h = _make_mock_handle()
        device = BrightnessDevice(h, PROFILE)
        assert device.set_percent(55) == 29700
        h.send_feature_report.assert_called_once_with(encode_report(29700))

    def test_set_percent_out_of_range(self):
        h = _make_mock_handle()
        device = BrightnessDevice(h, PROFILE)
        with pytest.raises(ValueError):
            device.set_percent(0)
        h.send_feature_report.assert_not_called()

    def test_context_manager_closes_handle(self):
        h = _make_mock_handle()
        with BrightnessDevice(h, PROFILE):
            pass
        h.close.assert_called_once()

    def test_closes_on_error(self):
        h = _make_mock_handle()
        with pytest.raises(RuntimeError):
            with BrightnessDevice(h, PROFILE):
                raise RuntimeError("boom")
        h.close.assert_called_once()
