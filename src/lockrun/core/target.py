"""Lock target resolution.

Turns the positional target into an open descriptor: a path is opened
(and created if missing), a bare number is taken as an inherited
descriptor.
"""

import errno
import logging
import os

from ..constants import LOCK_FILE_MODE
from ..errors import AccessError, CreationError, ResourceError, UsageError
from ..models import LockMode, LockTarget, TargetKind

logger = logging.getLogger(__name__)

_RESOURCE_ERRNOS = frozenset({errno.ENOMEM, errno.EMFILE, errno.ENFILE})
_CREATE_ERRNOS = frozenset({errno.EROFS, errno.ENOSPC})


def open_flags(path: str, mode: LockMode) -> int:
    """Choose open(2) flags for a lock file.

    Some systems allow exclusive locks on read-only files, so the file is
    opened read-only for shared locks and whenever it is not writable.
    """
    base = os.O_NOCTTY | os.O_CREAT
    if mode is LockMode.SHARED or not os.access(path, os.W_OK):
        return os.O_RDONLY | base
    return os.O_WRONLY | base


def open_lock_file(path: str, mode: LockMode) -> int:
    """Open or create the lock file at path.

    Directories cannot be opened for writing (or with O_CREAT), so an
    EISDIR failure is retried read-only.

    Raises:
        ResourceError: Descriptor or memory exhaustion
        CreationError: The file cannot be created (read-only fs, no space)
        AccessError: Any other open failure
    """
    try:
        try:
            return os.open(path, open_flags(path, mode), LOCK_FILE_MODE)
        except IsADirectoryError:
            logger.debug("%s is a directory, opening read-only", path)
            return os.open(path, os.O_RDONLY | os.O_NOCTTY)
    except OSError as e:
        if e.errno in _RESOURCE_ERRNOS:
            raise ResourceError(f"cannot open lock file {path}", cause=e) from e
        if e.errno in _CREATE_ERRNOS:
            raise CreationError(f"could not create lock file {path}", cause=e) from e
        raise AccessError(f"cannot open lock file {path}", cause=e) from e


def parse_descriptor(value: str) -> int:
    """Parse a decimal descriptor number.

    Raises:
        UsageError: If value is not a non-negative decimal integer
    """
    if not value.isdecimal():
        raise UsageError(
            f"requires a file path, directory path, or file descriptor (got {value!r})"
        )
    return int(value)


def resolve_target(target: str, mode: LockMode, with_command: bool) -> LockTarget:
    """Resolve the positional target into a LockTarget.

    Args:
        target: Path (when a command follows) or descriptor number
        mode: Requested lock mode, used to pick the open mode
        with_command: True if a command was given after the target

    Returns:
        LockTarget holding exactly one open descriptor
    """
    if with_command:
        fd = open_lock_file(target, mode)
        logger.debug("Opened %s as fd %d", target, fd)
        return LockTarget(fd=fd, kind=TargetKind.PATH, name=target)
    return LockTarget(fd=parse_descriptor(target), kind=TargetKind.DESCRIPTOR, name=target)
