"""Device detection for Kindler.

The e-reader is considered present when a mount point containing its
label shows up in the system mount table.
"""

from __future__ import annotations

import getpass
import re
from pathlib import Path
from threading import Event
from typing import Optional

from .config import FALLBACK_DOCUMENTS_PATH, DeviceConfig
from .logging_config import get_logger

logger = get_logger(__name__)

# /proc/mounts escapes space, tab, newline and backslash as \ooo
_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def _unescape(field: str) -> str:
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


class DeviceMonitor:
    """Probe the mount table for the device."""

    def __init__(self, label: str = "Kindle", mounts_file: Path = Path("/proc/mounts")):
        self.label = label
        self.mounts_file = mounts_file

    @classmethod
    def from_config(cls, config: DeviceConfig) -> "DeviceMonitor":
        return cls(label=config.label, mounts_file=config.mounts_file)

    def _mount_points(self) -> list[Path]:
        try:
            content = self.mounts_file.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.debug(f"Cannot read mount table {self.mounts_file}: {exc}")
            return []

        points = []
        for line in content.splitlines():
            fields = line.split()
            if len(fields) >= 2:
                points.append(Path(_unescape(fields[1])))
        return points

    def find_mount_point(self) -> Optional[Path]:
        """Return the first mount point whose path contains the device label."""
        for point in self._mount_points():
            if self.label in str(point):
                return point
        return None

    def is_device_present(self) -> bool:
        return self.find_mount_point() is not None

    def poll_until_present(self, interval: float, cancel: Event) -> bool:
        """Probe every `interval` seconds until the device shows up.

        Returns True once the device is present, False if `cancel` was set
        first.
        """
        while not cancel.is_set():
            if self.is_device_present():
                logger.info(f"Device '{self.label}' detected")
                return True
            if cancel.wait(interval):
                break
        logger.debug("Device polling cancelled")
        return False


def locate_documents(config: DeviceConfig, monitor: Optional[DeviceMonitor] = None) -> Path:
    """Resolve the folder holding the books on the device.

    Order: configured template, then <mount point>/<documents_dir>, then
    the default /media/<user>/Kindle/documents location.
    """
    user = getpass.getuser()
    if config.documents_path:
        return Path(config.documents_path.format(user=user)).expanduser()

    monitor = monitor or DeviceMonitor.from_config(config)
    mount_point = monitor.find_mount_point()
    if mount_point is not None:
        return mount_point / config.documents_dir

    return Path(FALLBACK_DOCUMENTS_PATH.format(user=user))
