from __future__ import annotations

from .base import BleScanner, NativeBridge
from .local import LocalBridge

__all__ = ["BleScanner", "LocalBridge", "NativeBridge"]
