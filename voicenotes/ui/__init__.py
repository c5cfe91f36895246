"""Terminal user interface."""

from .gesture_dispatcher import GestureDispatcher

__all__ = ["GestureDispatcher"]
