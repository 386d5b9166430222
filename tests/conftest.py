"""Shared test fixtures for lockrun tests."""

import fcntl
import os
import signal
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_alarm() -> Generator[None, None, None]:
    """Cancel any ITIMER_REAL left behind and restore the SIGALRM handler.

    A stray alarm with the default disposition would kill the test run.
    """
    previous = signal.getsignal(signal.SIGALRM)
    yield
    signal.setitimer(signal.ITIMER_REAL, 0)
    signal.signal(signal.SIGALRM, previous if previous is not None else signal.SIG_DFL)


@pytest.fixture
def lock_file(tmp_path: Path) -> Path:
    """Create an empty lock file."""
    path = tmp_path / "lockfile"
    path.touch()
    return path


@pytest.fixture
def held_lock(lock_file: Path) -> Generator[int, None, None]:
    """Hold an exclusive flock on lock_file through a separate descriptor.

    flock locks belong to the open file description, so this conflicts with
    any other descriptor opened on the same file, even in this process.
    Yields the holding descriptor.
    """
    fd = os.open(lock_file, os.O_RDONLY)
    fcntl.flock(fd, fcntl.LOCK_EX)
    try:
        yield fd
    finally:
        os.close(fd)


@pytest.fixture
def can_lock() -> Callable[[Path], bool]:
    """Return a check telling whether a fresh descriptor can lock a path without waiting."""

    def check(path: Path, operation: int = fcntl.LOCK_EX) -> bool:
        fd = os.open(path, os.O_RDONLY)
        try:
            fcntl.flock(fd, operation | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        finally:
            os.close(fd)
        return True

    return check
