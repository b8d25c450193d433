"""Discovery and preparation of macOS application bundles."""

from __future__ import annotations

import os
import plistlib
from dataclasses import dataclass

from carnivalkit import logger


@dataclass
class MacAppBundle:
    """A ``.app`` directory with its Info.plist and main executable."""

    app_path: str
    info_plist_path: str = ""
    executable_path: str = ""

    def mark_as_executable(self) -> None:
        """Set mode 0755 on the bundle's main executable."""
        if not self.executable_path:
            raise ValueError(f"no executable path set for bundle {self.app_path}")
        if not os.path.exists(self.executable_path):
            raise FileNotFoundError(f"executable not found: {self.executable_path}")
        try:
            os.chmod(self.executable_path, 0o755)
        except OSError as exc:
            raise OSError(
                f"failed to set executable permission on {self.executable_path}: {exc}"
            ) from exc


def parse_info_plist(plist_path: str | os.PathLike[str]) -> str:
    """Return the CFBundleExecutable named in an Info.plist, or ``""``.

    Raises OSError if the file cannot be read and ValueError if it is not
    a valid property list.
    """
    with open(plist_path, "rb") as handle:
        data = plistlib.load(handle)
    if not isinstance(data, dict):
        return ""
    value = data.get("CFBundleExecutable", "")
    return value if isinstance(value, str) else ""


def _bundle_for(app_path: str) -> MacAppBundle | None:
    bundle = MacAppBundle(
        app_path=app_path,
        info_plist_path=os.path.join(app_path, "Contents", "Info.plist"),
    )
    if not os.path.exists(bundle.info_plist_path):
        return None
    try:
        executable = parse_info_plist(bundle.info_plist_path)
    except (OSError, ValueError):
        return None
    if not executable:
        return None
    bundle.executable_path = os.path.join(app_path, "Contents", "MacOS", executable)
    return bundle


def _scan(path: str, bundles: list[MacAppBundle]) -> None:
    if os.path.basename(path).endswith(".app"):
        bundle = _bundle_for(path)
        if bundle is not None:
            bundles.append(bundle)
        return
    with os.scandir(path) as entries:
        subdirs = sorted(
            entry.path for entry in entries if entry.is_dir(follow_symlinks=False)
        )
    for subdir in subdirs:
        _scan(subdir, bundles)


def find_mac_app_bundles(install_path: str | os.PathLike[str]) -> list[MacAppBundle]:
    """Find every ``.app`` bundle under ``install_path`` in name order.

    Bundles are not searched for nested bundles; those without a readable
    Info.plist naming an executable are left out.
    """
    root = os.fspath(install_path)
    if not os.path.isdir(root):
        os.stat(root)
        return []
    bundles: list[MacAppBundle] = []
    _scan(root, bundles)
    return bundles


def mark_mac_executables(install_path: str | os.PathLike[str]) -> None:
    """Make the main executable of every bundle under ``install_path`` runnable."""
    try:
        bundles = find_mac_app_bundles(install_path)
    except OSError as exc:
        raise OSError(f"failed to find Mac app bundles: {exc}") from exc

    for bundle in bundles:
        logger.debug("Marking executable", "path", bundle.executable_path)
        bundle.mark_as_executable()