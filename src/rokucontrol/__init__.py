"""rokucontrol - Roku ECP remote, Govee light control, macros and BLE room detection."""

from __future__ import annotations

from importlib.metadata import version

from .config import Settings, get_settings
from .engine import ControlEngine
from .errors import ControlError, ErrorType
from .models import Macro, RoomConfig, RoutineStep
from .storage import StateStore

__all__ = [
    "ControlEngine",
    "ControlError",
    "ErrorType",
    "Macro",
    "RoomConfig",
    "RoutineStep",
    "Settings",
    "StateStore",
    "__version__",
    "get_settings",
]

__version__ = version("rokucontrol")
