"""
External command execution with explicit privilege selection.

Builds are usually launched through sudo. Compilation must still produce files
owned by the invoking user, while installation into system directories needs
the elevated credentials. Every spawn therefore names the credentials it runs
with through a Privilege value instead of each call site checking the
environment itself.

Command output is captured (stdout and stderr merged) and written to the
`phpforge.process.output` logger. That logger does not propagate to the console
handlers; build logs attach a file handler to it directly.
"""

import grp
import logging
import os
import pwd
import subprocess
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from phpforge.core.exceptions import CommandError, InsufficientPermissionsError

logger = logging.getLogger(__name__)

output_logger = logging.getLogger("phpforge.process.output")
output_logger.propagate = False
output_logger.setLevel(logging.DEBUG)


class Privilege(Enum):
    """Credentials a spawned command runs with."""

    USER = "user"  # The invoking (sudo-calling) user
    ELEVATED = "elevated"  # The credentials of this process


@dataclass(frozen=True)
class RealUser:
    """The human user behind the current process, even under sudo."""

    name: str
    uid: int
    gid: int
    group: str
    home: Path


@dataclass
class CommandResult:
    """Result of a finished external command."""

    args: List[str]
    returncode: int
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def get_real_user() -> RealUser:
    """
    Resolve the user who invoked the command.

    When running under sudo, SUDO_USER names the original user; otherwise
    the current effective user is returned.

    Returns:
        RealUser with name, ids, primary group and home directory
    """
    name = os.environ.get("SUDO_USER")
    entry = None
    if name:
        try:
            entry = pwd.getpwnam(name)
        except KeyError:
            logger.warning(f"SUDO_USER '{name}' not found, using current user")
            entry = None
    if entry is None:
        entry = pwd.getpwuid(os.geteuid())

    try:
        group = grp.getgrgid(entry.pw_gid).gr_name
    except KeyError:
        group = "nobody"

    return RealUser(
        name=entry.pw_name,
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        group=group,
        home=Path(entry.pw_dir),
    )


def is_elevated() -> bool:
    """Return True if this process runs as root."""
    return os.geteuid() == 0


def should_drop_privileges() -> bool:
    """Return True if USER commands need different credentials than ours."""
    return is_elevated() and bool(os.environ.get("SUDO_USER"))


def cpu_count(default: int = 4) -> int:
    """Number of processors for parallel compilation, `default` if unknown."""
    count = os.cpu_count()
    return count if count and count > 0 else default


@dataclass
class _SpawnOptions:
    env: Dict[str, str] = field(default_factory=dict)
    user: Optional[int] = None
    group: Optional[int] = None
    extra_groups: Optional[List[int]] = None


def _spawn_options(privilege: Privilege, env: Optional[Dict[str, str]]) -> _SpawnOptions:
    options = _SpawnOptions(env=dict(os.environ))
    if env:
        options.env.update(env)

    if privilege is Privilege.USER and should_drop_privileges():
        real_user = get_real_user()
        options.user = real_user.uid
        options.group = real_user.gid
        options.extra_groups = []
        options.env["HOME"] = str(real_user.home)
        options.env["USER"] = real_user.name
        options.env["LOGNAME"] = real_user.name

    return options


def run_command(
    args: Sequence[Union[str, Path]],
    privilege: Privilege = Privilege.USER,
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    check: bool = True,
) -> CommandResult:
    """
    Run an external command and capture its combined output.

    Args:
        args: Command and arguments
        privilege: Credentials to run with
        cwd: Working directory
        env: Extra environment variables
        timeout: Seconds before the command is killed (None waits forever)
        check: Raise CommandError on non-zero exit

    Returns:
        CommandResult with exit code and captured output

    Raises:
        CommandError: If the command fails and check is True, or cannot be
            started at all
    """
    argv = [str(a) for a in args]
    options = _spawn_options(privilege, env)

    logger.debug(f"Running ({privilege.value}): {' '.join(argv)}")
    output_logger.debug(f"$ {' '.join(argv)}")

    kwargs = {}
    if options.user is not None:
        kwargs["user"] = options.user
        kwargs["group"] = options.group
        kwargs["extra_groups"] = options.extra_groups

    try:
        completed = subprocess.run(
            argv,
            cwd=str(cwd) if cwd else None,
            env=options.env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
            **kwargs,
        )
    except FileNotFoundError as e:
        output_logger.debug(str(e))
        raise CommandError(argv, 127, str(e)) from e
    except OSError as e:
        # Not executable, or not reachable with the credentials it runs under
        output_logger.debug(str(e))
        raise CommandError(argv, 126, str(e)) from e
    except subprocess.TimeoutExpired as e:
        output = e.output if isinstance(e.output, str) else ""
        output_logger.debug(output)
        raise CommandError(argv, -1, f"Timed out after {timeout}s\n{output}") from e

    output = completed.stdout or ""
    if output:
        output_logger.debug(output.rstrip("\n"))

    result = CommandResult(args=argv, returncode=completed.returncode, output=output)
    if check and not result.succeeded:
        raise CommandError(argv, result.returncode, output)
    return result


def _nearest_existing(path: Path) -> Path:
    while not path.exists() and path != path.parent:
        path = path.parent
    return path


def check_write_access(*paths: Path) -> None:
    """
    Verify this process can write to each path (or its nearest existing parent).

    Raises:
        InsufficientPermissionsError: For the first path that is not writable
    """
    for path in paths:
        target = _nearest_existing(Path(path))
        if not os.access(target, os.W_OK):
            raise InsufficientPermissionsError(Path(path))
