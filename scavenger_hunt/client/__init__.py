"""
Python client for the Scavenger Hunt API
"""
from scavenger_hunt.client.api import ApiError, HuntClient
from scavenger_hunt.client.scanner import CameraPermissionError, QRScanner, ScannerState
from scavenger_hunt.client.session import ClientSession

__all__ = [
    "ApiError",
    "HuntClient",
    "CameraPermissionError",
    "QRScanner",
    "ScannerState",
    "ClientSession",
]
