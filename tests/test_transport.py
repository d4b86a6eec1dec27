"""Tests for the HID transport layer (report splitting, reader thread, backends).

No real USB hardware required; pyusb calls are patched.
"""

import threading
import time
from unittest.mock import MagicMock, patch

import pytest
import usb.core

from arcticfox.errors import TransportError, TransportOpenError, TransportWriteError
from arcticfox.transport import (
    HidApiTransport,
    HidTransport,
    PyUsbTransport,
    create_transport,
    find_devices,
    split_reports,
)


class QueueTransport(HidTransport):
    """In-memory backend: reads pop from a queue, writes are recorded."""

    def __init__(self, reports=()):
        super().__init__()
        self.reports = list(reports)
        self.written = []
        self.closed = False
        self.open_error = None

    def _open_device(self):
        if self.open_error:
            raise self.open_error

    def _close_device(self):
        self.closed = True

    def _write_report(self, report):
        self.written.append(report)

    def _read_report(self):
        if self.reports:
            item = self.reports.pop(0)
            if isinstance(item, Exception):
                raise item
            return item
        time.sleep(0.005)
        return b''


def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


# =========================================================================
# split_reports
# =========================================================================

class TestSplitReports:

    def test_empty(self):
        assert split_reports(b'') == []

    def test_short_is_padded(self):
        assert split_reports(b'\x01\x02') == [b'\x01\x02' + b'\x00' * 62]

    def test_exact_report(self):
        assert split_reports(b'\xff' * 64) == [b'\xff' * 64]

    def test_configuration_blob(self):
        reports = split_reports(b'\x01' * 1088)
        assert len(reports) == 17
        assert all(len(r) == 64 for r in reports)

    def test_tail_padding(self):
        reports = split_reports(b'\x01' * 65)
        assert reports[1] == b'\x01' + b'\x00' * 63


# =========================================================================
# HidTransport base behaviour
# =========================================================================

class TestHidTransport:

    def test_reader_delivers_reports_in_order(self):
        t = QueueTransport([b'a' * 64, b'', b'b' * 64])
        received = []
        t.set_handlers(received.append, None)
        t.open()
        try:
            assert _wait_for(lambda: len(received) == 2)
        finally:
            t.close()
        assert received == [b'a' * 64, b'b' * 64]

    def test_read_exception_reports_fatal_error(self):
        t = QueueTransport([OSError("unplugged")])
        errors = []
        done = threading.Event()

        def on_error(e):
            errors.append(e)
            done.set()

        t.set_handlers(None, on_error)
        t.open()
        try:
            assert done.wait(2.0)
        finally:
            t.close()
        assert isinstance(errors[0], TransportError)
        assert errors[0].fatal is True
        assert "unplugged" in str(errors[0])

    def test_open_wraps_backend_errors(self):
        t = QueueTransport()
        t.open_error = PermissionError("access denied")
        with pytest.raises(TransportOpenError, match="access denied"):
            t.open()
        assert not t.is_open

    def test_write_splits_reports(self):
        t = QueueTransport()
        t.open()
        try:
            assert t.write(b'\x01' * 100) == 100
        finally:
            t.close()
        assert len(t.written) == 2

    def test_write_when_closed(self):
        with pytest.raises(TransportWriteError, match="not open"):
            QueueTransport().write(b'\x00')

    def test_write_backend_failure(self):
        t = QueueTransport()
        t._write_report = MagicMock(side_effect=OSError("EPIPE"))
        t.open()
        try:
            with pytest.raises(TransportWriteError, match="EPIPE"):
                t.write(b'\x00')
        finally:
            t.close()

    def test_close_is_idempotent(self):
        t = QueueTransport()
        t.open()
        t.close()
        t.close()
        assert t.closed
        assert not t.is_open


# =========================================================================
# PyUSB backend
# =========================================================================

def _make_usb_device():
    dev = MagicMock()
    dev.is_kernel_driver_active.return_value = True
    ep_out = MagicMock(bEndpointAddress=0x01)
    ep_in = MagicMock(bEndpointAddress=0x81)
    cfg = MagicMock()
    cfg.__getitem__.return_value = [ep_out, ep_in]
    dev.get_active_configuration.return_value = cfg

    def _read(*args, **kwargs):
        time.sleep(0.005)
        raise usb.core.USBTimeoutError("timeout")

    dev.read.side_effect = _read
    return dev


class TestPyUsbTransport:

    @patch('arcticfox.transport.usb.util.dispose_resources')
    @patch('arcticfox.transport.usb.util.release_interface')
    @patch('arcticfox.transport.usb.util.claim_interface')
    @patch('arcticfox.transport.usb.core.find')
    def test_open_write_close(self, mock_find, mock_claim, mock_release, mock_dispose):
        dev = _make_usb_device()
        mock_find.return_value = dev

        t = PyUsbTransport()
        t.open()
        try:
            mock_find.assert_called_once_with(idVendor=0x0416, idProduct=0x5020)
            dev.detach_kernel_driver.assert_called_once_with(0)
            dev.set_configuration.assert_called_once_with(1)
            mock_claim.assert_called_once_with(dev, 0)
            t.write(b'\x66' * 70)
        finally:
            t.close()

        assert dev.write.call_count == 2
        ep, report = dev.write.call_args_list[0].args
        assert ep == 0x01
        assert len(report) == 64
        mock_release.assert_called_once_with(dev, 0)
        mock_dispose.assert_called_once_with(dev)

    @patch('arcticfox.transport.usb.core.find', return_value=None)
    def test_device_not_found(self, mock_find):
        with pytest.raises(TransportOpenError, match="not found"):
            PyUsbTransport().open()

    @patch('arcticfox.transport.usb.util.dispose_resources')
    @patch('arcticfox.transport.usb.util.release_interface')
    @patch('arcticfox.transport.usb.util.claim_interface')
    @patch('arcticfox.transport.usb.core.find')
    def test_missing_endpoints(self, mock_find, *_):
        dev = _make_usb_device()
        dev.get_active_configuration.return_value.__getitem__.return_value = []
        mock_find.return_value = dev
        with pytest.raises(TransportOpenError, match="endpoints"):
            PyUsbTransport().open()


# =========================================================================
# HIDAPI backend / factory
# =========================================================================

class TestBackends:

    def test_create_default_is_pyusb(self):
        assert isinstance(create_transport(), PyUsbTransport)

    def test_unknown_backend(self):
        with pytest.raises(ValueError, match="Unknown backend"):
            create_transport('serial')

    @patch('arcticfox.transport.HIDAPI_AVAILABLE', False)
    def test_hidapi_missing(self):
        with pytest.raises(ImportError, match="hidapi"):
            HidApiTransport()

    @patch('arcticfox.transport.HIDAPI_AVAILABLE', True)
    def test_hidapi_write_prefixes_report_id(self):
        fake_hid = MagicMock(spec=['Device'])
        device = fake_hid.Device.return_value
        device.read.side_effect = lambda *args: time.sleep(0.005) or b''
        with patch('arcticfox.transport.hidapi', fake_hid, create=True):
            t = HidApiTransport()
            t.open()
            try:
                t.write(b'\x01')
            finally:
                t.close()
        fake_hid.Device.assert_called_once_with(vid=0x0416, pid=0x5020)
        written = device.write.call_args.args[0]
        assert written[0] == 0x00
        assert len(written) == 65
        device.close.assert_called_once()

    @patch('arcticfox.transport.usb.util.get_string', return_value='SN123')
    @patch('arcticfox.transport.usb.core.find')
    def test_find_devices(self, mock_find, mock_get_string):
        mock_find.return_value = [MagicMock(iSerialNumber=3, bus=1, address=7)]
        devices = find_devices()
        assert devices == [{
            'vid': 0x0416, 'pid': 0x5020, 'serial': 'SN123', 'bus': 1, 'address': 7,
        }]
