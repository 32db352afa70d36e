"""Non-blocking single-key input for the live timer (POSIX terminals)."""

import sys
from typing import Optional

# Key -> intent understood by the live timer.
KEY_BINDINGS = {
    "p": "pause",
    "r": "resume",
    "s": "stop",
    "q": "detach",
}


class KeyboardHandler:
    """Read single keypresses without blocking, in cbreak mode."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdin
        self.old_settings = None
        self._setup()

    def _setup(self):
        """Switch the terminal to cbreak mode if it is a tty."""
        try:
            import termios
            import tty

            fd = self.stream.fileno()
            self.old_settings = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except (ImportError, OSError, ValueError, AttributeError):
            # Not a terminal (pipes, tests) or not POSIX.
            self.old_settings = None

    def get_key(self) -> Optional[str]:
        """Return the pressed key (lower-cased) or None if nothing is waiting."""
        try:
            import select

            if select.select([self.stream], [], [], 0)[0]:
                key = self.stream.read(1)
                return key.lower() if key else None
        except (ImportError, OSError, ValueError):
            pass
        return None

    def get_intent(self) -> Optional[str]:
        """Map the pending keypress to a timer intent."""
        key = self.get_key()
        if key is None:
            return None
        return KEY_BINDINGS.get(key)

    def stop(self):
        """Restore terminal settings."""
        if self.old_settings is not None:
            import termios

            try:
                termios.tcsetattr(self.stream.fileno(), termios.TCSADRAIN, self.old_settings)
            except (OSError, ValueError):
                pass
            self.old_settings = None
