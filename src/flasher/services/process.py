"""Process lifecycle control: restart on retry, guarded shutdown while flashing."""

import logging
import os
import sys
from typing import Optional

from flasher.models.status import BUSY_STEPS, ErrorCode
from flasher.services.state_manager import SessionState


class ProcessManager:
    """Restarts the current process, the only way to get a fresh session."""

    def __init__(self):
        """Initialize process manager."""
        self.logger = logging.getLogger("flasher.process")

    def restart(self) -> None:
        """Replace the running process with a fresh copy of itself.

        Uses the original interpreter arguments so `python -m flasher.main`
        restarts the same way it was launched. Does not return.

        Raises:
            OSError: If exec fails
        """
        argv = [sys.executable, *sys.orig_argv[1:]]
        self.logger.warning(f"Restarting process: {' '.join(argv)}")

        for handler in logging.getLogger().handlers + logging.getLogger("flasher").handlers:
            handler.flush()

        try:
            os.execv(sys.executable, argv)
        except OSError as e:
            self.logger.error(f"Failed to restart process: {e}")
            raise


class ShutdownGuard:
    """Refuses the first shutdown request while a session is mid-flight.

    Downloads, unpacking and partition writes cannot be rolled back, so a
    shutdown signal during those steps only exits once it is repeated.
    """

    def __init__(self, state: Optional[SessionState] = None):
        """Initialize shutdown guard.

        Args:
            state: SessionState instance (uses singleton if None)
        """
        self.logger = logging.getLogger("flasher.process")
        self.state = state or SessionState()
        self._pending_confirmation = False

    def is_busy(self) -> bool:
        return (
            self.state.step.get() in BUSY_STEPS
            and self.state.error.get() == ErrorCode.NONE
        )

    def should_exit(self) -> bool:
        """Decide whether a shutdown request may proceed.

        Returns:
            True if the process may exit now, False if confirmation is needed
        """
        if not self.is_busy():
            return True

        if self._pending_confirmation:
            self.logger.warning(
                f"Shutdown confirmed during {self.state.step.get().name}; "
                f"device needs manual recovery"
            )
            return True

        self._pending_confirmation = True
        self.logger.warning(
            f"Session busy ({self.state.step.get().name}), refusing to exit. "
            f"Repeat the shutdown request to force it."
        )
        return False
