"""Device recognition check run before anything is written to a device."""

import logging
from typing import Iterable

logger = logging.getLogger("flasher.validator")

EXPECTED_SLOT_COUNT = 2

EXPECTED_PARTITIONS = frozenset({
    "ALIGN_TO_128K_1", "ALIGN_TO_128K_2", "ImageFv", "abl", "aop", "apdp",
    "bluetooth", "boot", "cache", "cdt", "cmnlib", "cmnlib64", "ddr", "devcfg",
    "devinfo", "dip", "dsp", "fdemeta", "frp", "fsc", "fsg", "hyp", "keymaster",
    "keystore", "limits", "logdump", "logfs", "mdtp", "mdtpsecapp", "misc",
    "modem", "modemst1", "modemst2", "msadp", "persist", "qupfw", "rawdump",
    "sec", "splash", "spunvm", "ssd", "sti", "storsec", "system", "systemrw",
    "toolsfv", "tz", "userdata", "vm-linux", "vm-system", "xbl", "xbl_config",
})


def is_recognized_device(slot_count: int, partitions: Iterable[str]) -> bool:
    """Check whether a connected device is one we know how to flash.

    The device must be A/B (two slots) and must not report any partition
    outside EXPECTED_PARTITIONS. Reporting fewer partitions is accepted.

    Args:
        slot_count: Number of boot slots reported by the device
        partitions: Partition names reported by the device (without slot suffix)

    Returns:
        True if the device is safe to flash, False otherwise
    """
    if slot_count != EXPECTED_SLOT_COUNT:
        logger.error(f"Unrecognised device (slot count {slot_count})")
        return False

    unexpected = sorted(set(partitions) - EXPECTED_PARTITIONS)
    if unexpected:
        logger.error(f"Unrecognised device (partitions): {unexpected}")
        return False

    return True
