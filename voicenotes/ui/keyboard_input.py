"""Cross-platform single-key input for the recording screen."""

import sys
import threading
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], bool]


class KeyboardInputHandler:
    """Reads single keypresses on a background thread.

    On Unix the terminal is switched to cbreak mode for the lifetime of the
    handler so keys arrive one at a time without waiting for Enter.
    """

    def __init__(self, callback: KeyCallback, stream=None, poll_interval: float = 0.05):
        """Initialize keyboard handler.

        Args:
            callback: Takes a key and returns True to continue, False to quit
            stream: Input stream (defaults to stdin)
            poll_interval: Seconds to wait for a key before re-checking ``running``
        """
        self.callback = callback
        self.stream = stream or sys.stdin
        self.poll_interval = poll_interval
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.finished = threading.Event()
        self._saved_terminal = None

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.finished.clear()
        if sys.platform != "win32":
            self._enter_cbreak()
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyboardInput"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        self._restore_terminal()
        logger.info("Keyboard input handler stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the callback asks to quit."""
        return self.finished.wait(timeout)

    def _input_loop(self) -> None:
        try:
            while self.running:
                key = self._get_key()
                if key is None:
                    continue
                logger.debug(f"Key detected: {key!r}")
                if not self.callback(key):
                    logger.info("Callback returned False, leaving input loop")
                    break
        except Exception as e:
            logger.error(f"Input loop error: {e}", exc_info=True)
        finally:
            self.running = False
            self.finished.set()

    def _get_key(self) -> Optional[str]:
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        import time

        if msvcrt.kbhit():
            return msvcrt.getwch().lower()
        time.sleep(self.poll_interval)
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select

        readable, _, _ = select.select([self.stream], [], [], self.poll_interval)
        if not readable:
            return None
        key = self.stream.read(1)
        if key == "":
            # EOF: nothing more will arrive
            self.running = False
            return None
        return key.lower()

    def _enter_cbreak(self) -> None:
        import termios
        import tty

        try:
            fd = self.stream.fileno()
            self._saved_terminal = (fd, termios.tcgetattr(fd))
            tty.setcbreak(fd)
        except (termios.error, AttributeError, ValueError, OSError) as e:
            logger.warning(f"Cannot switch terminal to cbreak mode: {e}")
            self._saved_terminal = None

    def _restore_terminal(self) -> None:
        if self._saved_terminal is None:
            return
        import termios

        fd, settings = self._saved_terminal
        self._saved_terminal = None
        termios.tcsetattr(fd, termios.TCSADRAIN, settings)


class SimpleInputHandler:
    """Line-based fallback when the terminal cannot deliver single keys."""

    def __init__(self, callback: KeyCallback):
        self.callback = callback
        self.running = False
        self.thread: Optional[threading.Thread] = None
        self.finished = threading.Event()

    def start(self) -> None:
        if self.running:
            return
        self.running = True
        self.finished.clear()
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.start()
        logger.info("Simple input handler started")

    def stop(self) -> None:
        self.running = False
        logger.info("Simple input handler stopped")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self.finished.wait(timeout)

    def _input_loop(self) -> None:
        try:
            while self.running:
                try:
                    user_input = input("> ").strip().lower()
                except (EOFError, KeyboardInterrupt):
                    break
                # Empty line counts as an activation
                key = user_input[0] if user_input else " "
                if not self.callback(key):
                    break
        finally:
            self.running = False
            self.finished.set()


def create_input_handler(callback: KeyCallback):
    """Single-key handler for interactive terminals, line-based otherwise."""
    if sys.platform == "win32" or sys.stdin.isatty():
        return KeyboardInputHandler(callback)
    logger.warning("stdin is not a terminal, using line-based input")
    return SimpleInputHandler(callback)
