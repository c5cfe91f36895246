"""Resolve raw button activations into single/double commands."""

import threading
import time
import logging
from typing import Callable, Optional, Any

from ..models.events import Command

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_SECONDS = 0.4


class GestureDispatcher:
    """Turns activations into PRIMARY/SECONDARY commands using a timing window.

    The window starts at the first activation of a burst. When it closes,
    one activation resolves to PRIMARY and two or more to SECONDARY.
    While the coordinator is in error every activation becomes an immediate
    ACKNOWLEDGE.
    """

    def __init__(self,
                 on_command: Callable[[Command], None],
                 is_error: Callable[[], bool] = lambda: False,
                 window_seconds: float = DEFAULT_WINDOW_SECONDS,
                 timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
                 clock: Callable[[], float] = time.monotonic):
        """Initialize dispatcher.

        Args:
            on_command: Receives every resolved command
            is_error: Returns True while the coordinator is in the error phase
            window_seconds: Resolution delay measured from the first activation
            timer_factory: Creates a startable/cancellable timer (threading.Timer signature)
            clock: Monotonic clock, used for logging burst timing
        """
        self.on_command = on_command
        self.is_error = is_error
        self.window_seconds = window_seconds
        self.timer_factory = timer_factory
        self.clock = clock

        self._lock = threading.Lock()
        self._timer: Optional[Any] = None
        self._activations = 0
        self._first_activation_at: Optional[float] = None

    def on_activation(self) -> None:
        """Register one physical tap/click/press-release."""
        if self.is_error():
            with self._lock:
                self._clear_window()
            logger.debug("Activation while in error -> ACKNOWLEDGE")
            self.on_command(Command.ACKNOWLEDGE)
            return

        with self._lock:
            self._activations += 1
            if self._timer is not None:
                logger.debug(f"Activation {self._activations} joined pending burst")
                return

            self._first_activation_at = self.clock()
            timer = self.timer_factory(self.window_seconds, self._resolve)
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def _resolve(self) -> None:
        with self._lock:
            if self._timer is None:
                # Window was discarded (reset or acknowledge) before firing
                return
            count = self._activations
            started = self._first_activation_at
            self._clear_window(cancel=False)

        command = Command.PRIMARY if count == 1 else Command.SECONDARY
        if started is not None:
            logger.debug(f"Burst of {count} resolved to {command.name} "
                         f"after {self.clock() - started:.3f}s")
        self.on_command(command)

    def _clear_window(self, cancel: bool = True) -> None:
        if cancel and self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._activations = 0
        self._first_activation_at = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def reset(self) -> None:
        """Discard any pending burst without emitting a command."""
        with self._lock:
            self._clear_window()
