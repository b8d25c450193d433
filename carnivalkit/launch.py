"""Finding game executables and running them, natively, under Wine or a wrapper."""

from __future__ import annotations

import os
import shlex
import shutil
import signal
import stat
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from carnivalkit import logger
from carnivalkit.macapp import find_mac_app_bundles
from carnivalkit.manifest import BuildOS

_POLL_INTERVAL = 0.1

_IGNORED_PARTS = (
    "unins000.exe",
    "uninstall.exe",
    "uninst.exe",
    "crashhandler",
    "crashreporter",
    "crash_reporter",
    "ue4prereqsetup",
    "dxsetup",
    "vcredist",
    "dotnetfx",
    "directx",
    "physx",
    "redist",
    "setup",
    "installer",
)

_LINUX_SKIPPED_EXTENSIONS = {".sh", ".py", ".so"}

DEFAULT_WINE_CANDIDATES = (
    "/usr/local/bin/wine",
    "/usr/bin/wine",
    "/opt/wine-stable/bin/wine",
    "/opt/wine-staging/bin/wine",
)

MAC_WINE_CANDIDATES = (
    "/Applications/Wine Stable.app/Contents/Resources/wine/bin/wine",
    "/Applications/Wine Staging.app/Contents/Resources/wine/bin/wine",
    "/opt/homebrew/bin/wine",
    "/usr/local/opt/wine/bin/wine",
)


class LaunchError(Exception):
    """Raised when a game cannot be found, started, or exits with an error."""

    def __init__(self, message: str, returncode: int | None = None) -> None:
        super().__init__(message)
        self.returncode = returncode


class LaunchCancelled(LaunchError):
    """Raised when a running game was terminated because of a cancel request."""


@dataclass
class Executable:
    """A launchable program and the name it is shown under."""

    path: str
    name: str


@dataclass
class LaunchOptions:
    """How a game is started.

    ``wrapper``, when set, is a command line that runs in place of Wine.
    """

    wine_path: str = ""
    wine_prefix: str = ""
    no_wine: bool = False
    wrapper: str = ""


def _walk_dir(path: str) -> Iterator[tuple[str, os.stat_result]]:
    with os.scandir(path) as entries:
        ordered = sorted(entries, key=lambda entry: entry.name)
    for entry in ordered:
        if entry.is_dir(follow_symlinks=False):
            yield from _walk_dir(entry.path)
        else:
            yield entry.path, entry.stat(follow_symlinks=False)


def _walk_files(root: str) -> Iterator[tuple[str, os.stat_result]]:
    """Yield every non-directory under ``root`` in lexical order."""
    info = os.lstat(root)
    if not stat.S_ISDIR(info.st_mode):
        yield root, info
        return
    yield from _walk_dir(root)


def is_ignored_executable(name: str) -> bool:
    """Tell whether a file name looks like an installer, uninstaller or helper."""
    lower = name.lower()
    return any(part in lower for part in _IGNORED_PARTS)


def _find_mac_executables(install_path: str) -> list[Executable]:
    return [
        Executable(path=bundle.executable_path, name=os.path.basename(bundle.app_path))
        for bundle in find_mac_app_bundles(install_path)
        if bundle.executable_path and os.path.exists(bundle.executable_path)
    ]


def _find_windows_executables(install_path: str) -> list[Executable]:
    found = []
    for path, _info in _walk_files(install_path):
        lower = os.path.basename(path).lower()
        if lower.endswith(".exe") and not is_ignored_executable(lower):
            found.append(Executable(path=path, name=os.path.relpath(path, install_path)))
    return found


def _find_linux_executables(install_path: str) -> list[Executable]:
    found = []
    for path, info in _walk_files(install_path):
        if not info.st_mode & 0o111:
            continue
        base = os.path.basename(path)
        if is_ignored_executable(base.lower()):
            continue
        if os.path.splitext(base)[1].lower() in _LINUX_SKIPPED_EXTENSIONS:
            continue
        found.append(Executable(path=path, name=os.path.relpath(path, install_path)))
    return found


def find_executables(
    install_path: str | os.PathLike[str], build_os: BuildOS | str
) -> list[Executable]:
    """Find launchable programs in an installation built for ``build_os``."""
    try:
        target = BuildOS(build_os)
    except ValueError:
        raise ValueError(f"unsupported OS: {build_os}") from None
    root = os.fspath(install_path)
    finders = {
        BuildOS.MAC: _find_mac_executables,
        BuildOS.WINDOWS: _find_windows_executables,
        BuildOS.LINUX: _find_linux_executables,
    }
    return finders[target](root)


def select_executable(
    executables: Sequence[Executable], exe_name: str = ""
) -> Executable:
    """Pick an executable, by case-insensitive substring of path or name if given."""
    if not executables:
        raise LaunchError("no executables found")

    if exe_name:
        wanted = exe_name.lower()
        for executable in executables:
            if wanted in executable.path.lower() or wanted in executable.name.lower():
                return executable
        raise LaunchError(f"executable '{exe_name}' not found")

    if len(executables) == 1:
        return executables[0]

    raise LaunchError("multiple executables found, please specify one with --exe")


def find_wine_in_candidates(candidates: Iterable[str]) -> str:
    """Return the first candidate path that exists, or ``""``."""
    return next((path for path in candidates if os.path.exists(path)), "")


def find_wine() -> str:
    """Locate a Wine binary on PATH or in well-known places; ``""`` if none."""
    on_path = shutil.which("wine")
    if on_path:
        return on_path
    candidates = list(DEFAULT_WINE_CANDIDATES)
    if sys.platform == "darwin":
        candidates.extend(MAC_WINE_CANDIDATES)
    return find_wine_in_candidates(candidates)


def _kill_process_group(process: subprocess.Popen) -> None:
    if os.name == "nt":
        subprocess.run(
            ["taskkill", "/PID", str(process.pid), "/T", "/F"],
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return
    try:
        pgid = os.getpgid(process.pid)
    except OSError:
        process.kill()
        return
    os.killpg(pgid, signal.SIGTERM)


def _run(
    command: list[str],
    cwd: str,
    env: dict[str, str] | None,
    cancel: threading.Event | None,
) -> None:
    """Run ``command`` to completion, terminating its process group on cancel."""
    extra = {"start_new_session": True} if os.name != "nt" else {}
    try:
        process = subprocess.Popen(command, cwd=cwd, env=env, **extra)
    except OSError as exc:
        raise LaunchError(f"failed to start {command[0]}: {exc}") from exc

    if cancel is None:
        returncode = process.wait()
    else:
        while True:
            try:
                returncode = process.wait(timeout=_POLL_INTERVAL)
                break
            except subprocess.TimeoutExpired:
                if not cancel.is_set():
                    continue
            logger.info("Terminating game process...")
            try:
                _kill_process_group(process)
            except (OSError, subprocess.CalledProcessError) as exc:
                logger.warn("Failed to kill process group", "error", exc)
            process.wait()
            raise LaunchCancelled("launch cancelled")

    if returncode != 0:
        raise LaunchError(f"exit status {returncode}", returncode=returncode)


def _prefix_env(wine_prefix: str) -> dict[str, str] | None:
    if not wine_prefix:
        return None
    return {**os.environ, "WINEPREFIX": wine_prefix}


def launch_native(
    executable_path: str,
    args: Sequence[str] | None = None,
    cancel: threading.Event | None = None,
) -> None:
    """Run an executable directly from its own directory."""
    command = [executable_path, *(args or ())]
    _run(command, os.path.dirname(executable_path), None, cancel)


def _launch_with_wrapper(
    executable_path: str,
    args: Sequence[str],
    options: LaunchOptions,
    cancel: threading.Event | None,
) -> None:
    try:
        parts = shlex.split(options.wrapper)
    except ValueError as exc:
        raise LaunchError(f"failed to parse wrapper command: {exc}") from exc
    if not parts:
        raise LaunchError("wrapper command is empty")
    command = [*parts, executable_path, *args]
    _run(command, os.path.dirname(executable_path), _prefix_env(options.wine_prefix), cancel)


def _launch_with_wine(
    executable_path: str,
    args: Sequence[str],
    options: LaunchOptions,
    cancel: threading.Event | None,
) -> None:
    wine_path = options.wine_path or find_wine()
    if not wine_path:
        raise LaunchError("wine not found; install Wine or specify path with --wine")

    if options.wine_prefix:
        try:
            os.makedirs(options.wine_prefix, mode=0o755, exist_ok=True)
        except OSError as exc:
            raise LaunchError(f"failed to create wine prefix directory: {exc}") from exc

    command = [wine_path, executable_path, *args]
    _run(command, os.path.dirname(executable_path), _prefix_env(options.wine_prefix), cancel)


def launch_game(
    executable_path: str | os.PathLike[str],
    build_os: BuildOS | str,
    args: Sequence[str] | None = None,
    options: LaunchOptions | None = None,
    cancel: threading.Event | None = None,
) -> None:
    """Run a game and wait for it to exit.

    A wrapper, if configured, takes precedence; Windows builds run under Wine
    on other systems unless ``no_wine`` is set. Setting ``cancel`` terminates
    the game and raises :class:`LaunchCancelled`; a non-zero exit raises
    :class:`LaunchError`.
    """
    path = os.fspath(executable_path)
    if not os.path.exists(path):
        raise LaunchError(f"executable not found: {path}")

    opts = options or LaunchOptions()
    game_args = list(args or ())

    if opts.wrapper:
        _launch_with_wrapper(path, game_args, opts, cancel)
        return

    needs_wine = (
        BuildOS(build_os) == BuildOS.WINDOWS and os.name != "nt" and not opts.no_wine
    )
    if needs_wine:
        _launch_with_wine(path, game_args, opts, cancel)
        return

    launch_native(path, game_args, cancel)