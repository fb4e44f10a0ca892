"""Error taxonomy shared by the transport, command and automation layers."""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Any


class ErrorType(str, Enum):
    NETWORK = "NETWORK"
    TIMEOUT = "TIMEOUT"
    DEVICE = "DEVICE"
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    STORAGE = "STORAGE"
    UNKNOWN = "UNKNOWN"


_TYPE_MESSAGES = {
    ErrorType.NETWORK: "Network connection issue",
    ErrorType.TIMEOUT: "Request timed out",
    ErrorType.DEVICE: "Device communication error",
    ErrorType.VALIDATION: "Invalid input",
    ErrorType.CONFLICT: "Already in progress",
    ErrorType.NOT_FOUND: "Not found",
    ErrorType.STORAGE: "Storage error",
    ErrorType.UNKNOWN: "An error occurred",
}


class ControlError(Exception):
    """Base class for every error raised by rokucontrol."""

    error_type = ErrorType.UNKNOWN

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context
        self.timestamp = time.time()

    def user_message(self) -> str:
        """Short human-readable message, safe to show in a UI."""
        return f"{_TYPE_MESSAGES[self.error_type]}: {self.message}"


class NetworkError(ControlError):
    error_type = ErrorType.NETWORK

    def __init__(self, message: str, status: int | None = None, **context: Any) -> None:
        super().__init__(message, **context)
        self.status = status


class RequestTimeoutError(ControlError):
    error_type = ErrorType.TIMEOUT


class DeviceError(ControlError):
    error_type = ErrorType.DEVICE


class InputError(ControlError):
    error_type = ErrorType.VALIDATION


class ConflictError(ControlError):
    error_type = ErrorType.CONFLICT


class NotFoundError(ControlError):
    error_type = ErrorType.NOT_FOUND


class StorageError(ControlError):
    error_type = ErrorType.STORAGE


def to_control_error(exc: BaseException, fallback: str = "An unexpected error occurred") -> ControlError:
    """Normalize any exception into a ControlError."""
    if isinstance(exc, ControlError):
        return exc

    message = str(exc) or fallback
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return RequestTimeoutError(message, original=exc)
    if isinstance(exc, (ConnectionError, OSError)):
        return NetworkError(message, original=exc)
    if isinstance(exc, ValueError):
        return InputError(message, original=exc)

    return ControlError(message, original=exc)
