"""Abstract capture device interface and the text-only null device."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..errors import DeviceError

logger = logging.getLogger(__name__)

CaptureCompleteCallback = Callable[[Optional[bytes], Optional[str]], None]
DeviceErrorCallback = Callable[[DeviceError], None]


class AbstractCaptureDevice(ABC):
    """Audio capture capability consumed by the session coordinator."""

    @abstractmethod
    def start(self, on_error: DeviceErrorCallback) -> None:
        """Acquire the device and start capturing.

        Raises:
            DeviceAcquisitionError: If the device cannot be opened
        """
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def resume(self) -> None:
        pass

    @abstractmethod
    def stop(self, on_complete: CaptureCompleteCallback) -> None:
        """Request capture stop. Must not block.

        ``on_complete(audio, mime_type)`` is called exactly once when the
        captured bytes are ready, with ``None`` audio if nothing was captured.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Forcibly close any held device handle. Idempotent."""
        pass

    @property
    def level(self) -> float:
        """Peak level of the latest captured frame, 0.0 to 1.0."""
        return 0.0


class NullCaptureDevice(AbstractCaptureDevice):
    """Capture device for text-only deployments: never records audio."""

    def __init__(self):
        self.is_recording = False

    def start(self, on_error: DeviceErrorCallback) -> None:
        logger.info("Null capture started (text-only mode)")
        self.is_recording = True

    def pause(self) -> None:
        pass

    def resume(self) -> None:
        pass

    def stop(self, on_complete: CaptureCompleteCallback) -> None:
        self.is_recording = False
        on_complete(None, None)

    def release(self) -> None:
        self.is_recording = False
