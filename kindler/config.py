"""Config management for Kindler.

Reads `config.ini` from the project root (beside main.py). Unlike a server
config, every setting has a working default: a missing default file simply
means "use the defaults".
"""

from __future__ import annotations

import configparser
import dataclasses
import os
import pathlib
import sys
from typing import Optional

from .logging_config import get_logger

logger = get_logger(__name__)


def _get_project_root() -> pathlib.Path:
    if getattr(sys, "frozen", False):
        return pathlib.Path(sys.executable).resolve().parent
    return pathlib.Path(__file__).resolve().parents[1]


PROJECT_ROOT = _get_project_root()

# DATA_DIR holds config.ini and kindler.log.
DATA_DIR = pathlib.Path(os.environ.get("DATA_DIR", str(PROJECT_ROOT)))
DEFAULT_CONFIG_PATH = DATA_DIR / "config.ini"

# Where the device shows up on a desktop Linux session when nothing else is known.
FALLBACK_DOCUMENTS_PATH = "/media/{user}/Kindle/documents"


@dataclasses.dataclass
class DeviceConfig:
    label: str = "Kindle"
    mounts_file: pathlib.Path = pathlib.Path("/proc/mounts")
    # Template; "{user}" expands to the login name. Empty means "derive from mount point".
    documents_path: str = ""
    documents_dir: str = "documents"
    poll_interval: float = 2.0


@dataclasses.dataclass
class ScannerConfig:
    extensions: tuple[str, ...] = ("mobi",)
    case_sensitive: bool = False
    ignore_patterns: tuple[str, ...] = (".DS_Store", "Thumbs.db", ".Trashes")


@dataclasses.dataclass
class KindlerConfig:
    device: DeviceConfig = dataclasses.field(default_factory=DeviceConfig)
    scanner: ScannerConfig = dataclasses.field(default_factory=ScannerConfig)

    @property
    def poll_interval(self) -> float:
        return self.device.poll_interval


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def load_config(config_path: Optional[pathlib.Path] = None) -> KindlerConfig:
    """Load configuration from config.ini.

    An explicit `config_path` must exist. When no path is given and the
    default `config.ini` is absent, the built-in defaults are returned.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        if config_path is not None:
            raise FileNotFoundError(f"Config file not found: {path}")
        logger.debug(f"No config at {path}, using defaults")
        return KindlerConfig()

    parser = configparser.ConfigParser()
    parser.read(path)

    defaults = DeviceConfig()
    device = DeviceConfig(
        label=parser.get("device", "label", fallback=defaults.label),
        mounts_file=pathlib.Path(
            parser.get("device", "mounts_file", fallback=str(defaults.mounts_file))
        ),
        documents_path=parser.get("device", "documents_path", fallback="").strip(),
        documents_dir=parser.get(
            "device", "documents_dir", fallback=defaults.documents_dir
        ),
        poll_interval=parser.getfloat(
            "device", "poll_interval", fallback=defaults.poll_interval
        ),
    )
    if device.poll_interval <= 0:
        raise ValueError(f"poll_interval must be positive, got {device.poll_interval}")
    if device.documents_path:
        try:
            device.documents_path.format(user="user")
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(
                f"Invalid documents_path {device.documents_path!r}: "
                "only the {user} placeholder is supported"
            ) from exc

    scanner = ScannerConfig(
        extensions=tuple(
            ext.lstrip(".")
            for ext in _parse_list(parser.get("scanner", "extensions", fallback="mobi"))
        ),
        case_sensitive=_parse_bool(
            parser.get("scanner", "case_sensitive", fallback="false"), False
        ),
        ignore_patterns=_parse_list(
            parser.get(
                "scanner",
                "ignore_patterns",
                fallback=",".join(ScannerConfig().ignore_patterns),
            )
        ),
    )

    return KindlerConfig(device=device, scanner=scanner)


_cached_config: Optional[KindlerConfig] = None


def get_config() -> KindlerConfig:
    """Return the cached config singleton. Loads from disk on first call."""
    global _cached_config
    if _cached_config is None:
        _cached_config = load_config()
    return _cached_config


def reset_config_cache() -> None:
    """Clear the cached config (useful for tests)."""
    global _cached_config
    _cached_config = None


def write_default_config(config_path: Optional[pathlib.Path] = None) -> pathlib.Path:
    """Write a config.ini holding the default settings and return its path."""
    path = config_path or DEFAULT_CONFIG_PATH
    device = DeviceConfig()
    scanner = ScannerConfig()

    parser = configparser.ConfigParser()
    parser["device"] = {
        "label": device.label,
        "mounts_file": str(device.mounts_file),
        "documents_path": device.documents_path,
        "documents_dir": device.documents_dir,
        "poll_interval": str(device.poll_interval),
    }
    parser["scanner"] = {
        "extensions": ",".join(scanner.extensions),
        "case_sensitive": "false",
        "ignore_patterns": ",".join(scanner.ignore_patterns),
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as handle:
        parser.write(handle)
    return path
