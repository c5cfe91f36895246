"""Audio capture devices."""

from .base import AbstractCaptureDevice, NullCaptureDevice
from .audio_pub import AudioPublisher, AUDIO_FRAME_TOPIC

__all__ = [
    'AbstractCaptureDevice',
    'NullCaptureDevice',
    'AudioPublisher',
    'AUDIO_FRAME_TOPIC',
]
