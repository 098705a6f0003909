"""Error translation and user-driven recovery for the flash session."""

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from flasher.models.status import ErrorCode, UnpackFailureKind
from flasher.services.interfaces import DeviceDisconnectedError, UnpackError
from flasher.services.process import ProcessManager
from flasher.services.state_manager import SessionState

logger = logging.getLogger("flasher.recovery")


class PhaseError(Exception):
    """A phase failed; carries the single coarse code for that phase."""

    def __init__(self, code: ErrorCode, detail: str = ""):
        super().__init__(f"{code.name}: {detail}" if detail else code.name)
        self.code = code
        self.detail = detail


def classify_unpack_failure(exc: Exception) -> ErrorCode:
    """Map an unpack failure to CHECKSUM_MISMATCH or UNPACK_FAILED."""
    if isinstance(exc, UnpackError) and exc.kind == UnpackFailureKind.CHECKSUM_MISMATCH:
        return ErrorCode.CHECKSUM_MISMATCH
    return ErrorCode.UNPACK_FAILED


@contextmanager
def translate_errors(
    code: ErrorCode,
    phase: str,
    classify: Optional[Callable[[Exception], ErrorCode]] = None,
) -> Iterator[None]:
    """Turn any failure inside the block into a PhaseError.

    The raw cause is logged and chained, never published.

    Args:
        code: Error code raised for any failure
        phase: Phase name for log messages
        classify: Optional function choosing the code from the raw exception

    Raises:
        PhaseError: On any exception raised inside the block
    """
    try:
        yield
    except PhaseError:
        raise
    except Exception as e:
        final_code = classify(e) if classify else code
        logger.error(f"{phase} error: {e}", exc_info=True)
        raise PhaseError(final_code, str(e)) from e


class RecoveryController:
    """Publishes failures and arms the continue/retry hooks."""

    def __init__(
        self,
        state: Optional[SessionState] = None,
        restart: Optional[Callable[[], None]] = None,
    ):
        """Initialize recovery controller.

        Args:
            state: SessionState instance (uses singleton if None)
            restart: Zero-argument callable armed as on_retry (restarts the process by default)
        """
        self.state = state or SessionState()
        self.restart = restart or ProcessManager().restart

    @staticmethod
    def error_code_for(exc: BaseException) -> ErrorCode:
        """Coarse error code for an exception that reached the session."""
        if isinstance(exc, PhaseError):
            return exc.code
        if isinstance(exc, DeviceDisconnectedError):
            return ErrorCode.LOST_CONNECTION
        return ErrorCode.UNKNOWN

    def handle_error(self, exc: BaseException) -> ErrorCode:
        """Publish the error for exc and halt the session.

        Returns:
            The published error code
        """
        code = self.error_code_for(exc)
        if not isinstance(exc, PhaseError):
            logger.error(f"Unhandled session error: {exc}", exc_info=exc)
        self.fail(code)
        return code

    def fail(self, code: ErrorCode) -> None:
        """Set the error, halt progress and offer only a retry."""
        logger.error(f"Session failed at {self.state.step.get().name}: {code.name}")
        self.state.error.set(code)
        self.state.progress.set(-1)
        self.state.on_continue.set(None)
        self.state.on_retry.set(self.restart)

    def arm_continue(self, callback: Callable[[], None]) -> None:
        """Offer a continue prompt, unless the session has failed."""
        if self.state.error.get() != ErrorCode.NONE:
            logger.warning("Not arming continue: session has failed")
            return
        self.state.on_continue.set(callback)

    def clear_continue(self) -> None:
        self.state.on_continue.set(None)
