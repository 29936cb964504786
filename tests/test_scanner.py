"""Camera QR scanner state machine and client-side QR helpers."""

import pytest

from scavenger_hunt.client import hunt
from scavenger_hunt.client.scanner import CameraPermissionError, QRScanner, ScannerState

EXPECTED = "TALABAT_HUNT_KITCHEN_AREA"


class FakeStream:
    def __init__(self, frames):
        self.frames = list(frames)
        self.stopped = 0

    def read_frame(self):
        return self.frames.pop(0) if self.frames else None

    def stop(self):
        self.stopped += 1


def make_scanner(frames, decode=lambda frame: frame or None):
    stream = FakeStream(frames)
    scanner = QRScanner(EXPECTED, open_camera=lambda: stream, decode=decode)
    return scanner, stream


def test_match_stops_the_stream():
    scanner, stream = make_scanner(["", EXPECTED, "never read"])
    assert scanner.state is ScannerState.IDLE

    assert scanner.run() == EXPECTED
    assert scanner.state is ScannerState.MATCHED
    assert stream.stopped == 1
    assert stream.frames == ["never read"]


def test_mismatch_is_transient():
    scanner, stream = make_scanner([])
    with scanner.camera():
        assert scanner.state is ScannerState.STREAMING
        assert scanner.process_frame("TALABAT_HUNT_BREAK_ROOM") is ScannerState.MISMATCHED
        assert scanner.process_frame(None) is ScannerState.STREAMING
        assert scanner.process_frame(EXPECTED) is ScannerState.MATCHED
    assert stream.stopped == 1
    assert scanner.state is ScannerState.MATCHED


def test_match_is_exact():
    scanner, stream = make_scanner([EXPECTED.lower(), f" {EXPECTED} "])
    assert scanner.run() is None
    assert scanner.last_payload == f" {EXPECTED} "
    assert scanner.state is ScannerState.CLOSED
    assert stream.stopped == 1


def test_permission_denied_closes_with_error():
    def deny():
        raise CameraPermissionError("Camera permission denied by user")

    scanner = QRScanner(EXPECTED, open_camera=deny, decode=lambda f: f)
    assert scanner.run() is None
    assert scanner.state is ScannerState.CLOSED
    assert scanner.error == "Camera permission denied by user"


def test_manual_close_releases_camera():
    frames = ["a", "b", "c", EXPECTED]

    def decode(frame):
        if frame == "b":
            scanner.close("page_hidden")
        return frame

    scanner, stream = make_scanner(frames, decode)
    assert scanner.run() is None
    assert scanner.state is ScannerState.CLOSED
    assert stream.stopped == 1
    assert stream.frames == ["c", EXPECTED]


def test_decoder_error_still_releases_camera():
    def decode(frame):
        raise RuntimeError("decoder crashed")

    scanner, stream = make_scanner(["x"], decode)
    with pytest.raises(RuntimeError):
        scanner.run()
    assert stream.stopped == 1
    assert scanner.state is ScannerState.CLOSED
    assert scanner.error == "decoder crashed"


def test_stream_end_and_frame_budget():
    scanner, stream = make_scanner(["a", "b"])
    assert scanner.run() is None
    assert scanner.state is ScannerState.CLOSED

    scanner, stream = make_scanner(["a", "b", EXPECTED])
    assert scanner.run(max_frames=2) is None
    assert stream.stopped == 1


def test_scanner_can_run_again_after_close():
    scanner, stream = make_scanner(["a"])
    scanner.run()
    stream.frames = [EXPECTED]
    assert scanner.run() == EXPECTED
    assert stream.stopped == 2


def test_client_matching_is_case_insensitive_and_trimmed():
    assert hunt.matches_checkpoint("  talabat_hunt_kitchen_area ", 3)
    assert not hunt.matches_checkpoint("TALABAT_HUNT_KITCHEN_AREA", 4)
    assert not hunt.matches_checkpoint("TALABAT_HUNT_KITCHEN_AREA", 42)
    assert hunt.identify_checkpoint("talabat_hunt_main_workspace") == 8
    assert hunt.identify_checkpoint("something else") is None
    assert hunt.matches_dashboard_game("talabat_city_run_complete", "city-run")
    assert hunt.identify_dashboard_game("TALABAT_TALABEATS_COMPLETE") == "talabeats"
    assert hunt.canonical_code(" talabat_hunt_break_room") == "TALABAT_HUNT_BREAK_ROOM"


def test_client_phone_helpers():
    assert hunt.validate_phone_number("12345678")
    assert not hunt.validate_phone_number("1234567")
    assert not hunt.validate_phone_number("+97412345678")
    assert hunt.to_international("12345678") == "+97412345678"
    assert hunt.mask_phone_number("+97412345678") == "+974****5678"
    assert hunt.mask_phone_number("123") == "123"


def test_format_time():
    assert hunt.format_time(0) == "00:00"
    assert hunt.format_time(754) == "12:34"
