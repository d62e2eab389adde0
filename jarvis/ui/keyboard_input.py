"""Keyboard input for the dashboard, read on a background thread."""

import sys
import threading
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


class KeyboardInputHandler:
    """Reads single keypresses and hands them to a callback.

    The callback runs on the reader thread; callers that live on an asyncio
    loop should forward keys with ``loop.call_soon_threadsafe``.
    """

    def __init__(self, callback: Callable[[str], bool]):
        """Initialize keyboard handler.

        Args:
            callback: Function that takes a key and returns True to continue, False to quit
        """
        self.callback = callback
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the keyboard input handler."""
        if self.running:
            return
        if not sys.stdin.isatty():
            logger.warning("stdin is not a terminal, keyboard input disabled")
            return

        self.running = True
        self.thread = threading.Thread(target=self._input_loop, daemon=True)
        self.thread.name = "KeyboardInputThread"
        self.thread.start()
        logger.info("Keyboard input handler started")

    def stop(self) -> None:
        """Stop the keyboard input handler."""
        self.running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)
        logger.info("Keyboard input handler stopped")

    def _input_loop(self) -> None:
        """Main input handling loop."""
        logger.info("Starting keyboard input loop")
        while self.running:
            try:
                key = self._get_key()
                if key is None:
                    continue
                logger.debug(f"Key detected: {key!r}")
                if not self.callback(key):
                    logger.info("Callback returned False, ending input loop")
                    self.running = False
            except Exception as e:
                # termios.error is not an OSError
                logger.error(f"Error in input loop: {e}", exc_info=True)
                self.running = False
        logger.info("Keyboard input loop ended")

    def _get_key(self) -> Optional[str]:
        """Get a single keypress, waiting at most ~0.1s."""
        if sys.platform == "win32":
            return self._get_key_windows()
        return self._get_key_unix()

    def _get_key_windows(self) -> Optional[str]:
        import msvcrt
        import time

        if msvcrt.kbhit():
            return msvcrt.getwch().lower()
        time.sleep(0.1)
        return None

    def _get_key_unix(self) -> Optional[str]:
        import select
        import termios
        import tty

        if not select.select([sys.stdin], [], [], 0.1)[0]:
            return None
        old_settings = termios.tcgetattr(sys.stdin)
        try:
            tty.setraw(sys.stdin.fileno())
            key = sys.stdin.read(1)
        finally:
            termios.tcsetattr(sys.stdin, termios.TCSADRAIN, old_settings)
        return key.lower()
