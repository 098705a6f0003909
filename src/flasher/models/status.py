"""Status enums for the flash session."""

from enum import Enum, IntEnum


class Step(IntEnum):
    """Flash session steps, in the order a session walks through them.

    State transitions:
    initializing → ready → connecting → downloading → unpacking → flashing → erasing → done

    A failure freezes the step where it happened and sets an ErrorCode.
    """

    INITIALIZING = 0
    READY = 1
    CONNECTING = 2
    DOWNLOADING = 3
    UNPACKING = 4
    FLASHING = 5
    ERASING = 6
    DONE = 7


class ErrorCode(IntEnum):
    """Coarse, UI-actionable error codes published by the session."""

    UNKNOWN = -1
    NONE = 0
    UNRECOGNIZED_DEVICE = 1
    LOST_CONNECTION = 2
    DOWNLOAD_FAILED = 3
    UNPACK_FAILED = 4
    CHECKSUM_MISMATCH = 5
    FLASH_FAILED = 6
    ERASE_FAILED = 7
    REQUIREMENTS_NOT_MET = 8


class UnpackFailureKind(str, Enum):
    """Discriminant carried by unpack failures."""

    GENERIC = "generic"
    CHECKSUM_MISMATCH = "checksum_mismatch"


# Steps during which the process must not exit without confirmation
BUSY_STEPS = frozenset(
    {Step.DOWNLOADING, Step.UNPACKING, Step.FLASHING, Step.ERASING}
)
