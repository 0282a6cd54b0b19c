"""
Extension Locks.

This module provides the three synchronization primitives used by the
extension manager.

Key features:
- CriticalSection: in-process mutual exclusion, shared across managers
- SharedLock: cross-process shared/exclusive lock on an installation root
- Mutex: cross-process exclusive lock keyed by an install location
- Timeouts on every acquisition, polled without blocking the event loop

Cross-process locks are advisory file locks (flock on POSIX, msvcrt on
Windows) on lock files kept in the temp directory, so they never appear
inside the directory they protect.
"""

import asyncio
import errno
import hashlib
import logging
import os
import tempfile
import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.05


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the maximum wait."""

    pass


class Release:
    """Idempotent release callback returned by every acquire()."""

    def __init__(self, release: Callable[[], None]):
        self._release = release
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def __call__(self) -> None:
        if self._released:
            return
        self._released = True
        self._release()


async def _poll_acquire(
    try_acquire: Callable[[], bool], timeout: float | None, description: str
) -> None:
    """
    Call try_acquire until it succeeds or the timeout expires.

    Args:
        try_acquire: Non-blocking acquisition attempt
        timeout: Maximum wait in seconds (None waits forever)
        description: Lock description for the error message

    Raises:
        LockTimeoutError: If the lock is not acquired in time
    """
    deadline = None if timeout is None else time.monotonic() + timeout
    while not try_acquire():
        if deadline is not None and time.monotonic() >= deadline:
            raise LockTimeoutError(f"Timed out after {timeout}s waiting for {description}")
        await asyncio.sleep(_POLL_INTERVAL)


def lock_file_path(key: str | Path) -> Path:
    """
    Get the lock file used for a lock key.

    Args:
        key: Lock key (usually a directory path)

    Returns:
        Path of the lock file under the temp directory
    """
    normalized = os.path.normcase(os.path.abspath(str(key)))
    digest = hashlib.sha256(normalized.encode("utf-8")).hexdigest()[:16]
    base = Path(tempfile.gettempdir()) / "extman" / "locks"
    base.mkdir(parents=True, exist_ok=True)
    return base / f"{digest}.lock"


def _try_lock(handle: IO[Any], shared: bool) -> bool:
    if os.name == "nt":
        import msvcrt

        # msvcrt has no shared mode; shared locks are exclusive on Windows
        try:
            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)  # type: ignore[attr-defined]
        except OSError:
            return False
        return True

    import fcntl

    mode = fcntl.LOCK_SH if shared else fcntl.LOCK_EX
    try:
        fcntl.flock(handle.fileno(), mode | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    except OSError as exc:
        if exc.errno in (errno.EAGAIN, errno.EWOULDBLOCK, errno.EACCES):
            return False
        raise
    return True


def _unlock(handle: IO[Any]) -> None:
    if os.name == "nt":
        import msvcrt

        try:
            handle.seek(0)
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)  # type: ignore[attr-defined]
        except OSError:
            return
        return

    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
    except OSError:
        return


class CriticalSection:
    """
    In-process critical section.

    Bounds how many logical operations may pass a guarded step at once
    (one). It is not bound to an event loop, so a single instance can be
    shared process-wide.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self, timeout: float | None = None) -> Release:
        """
        Enter the critical section.

        Args:
            timeout: Maximum wait in seconds (None waits forever)

        Returns:
            Idempotent release callback

        Raises:
            LockTimeoutError: If the section is not entered in time
        """
        await _poll_acquire(
            lambda: self._lock.acquire(blocking=False), timeout, "installer critical section"
        )
        return Release(self._lock.release)


# Shared by every ExtensionManager unless one is injected explicitly
default_critical_section = CriticalSection()


class Mutex:
    """
    Cross-process exclusive lock keyed by a path.

    Two Mutex instances with the same key exclude each other, whether they
    live in different processes or in the same one.
    """

    def __init__(self, key: str | Path):
        self.key = str(key)
        self.path = lock_file_path(key)

    async def acquire(self, timeout: float | None = None) -> Release:
        """
        Acquire the lock.

        Args:
            timeout: Maximum wait in seconds (None waits forever)

        Returns:
            Idempotent release callback

        Raises:
            LockTimeoutError: If the lock is not acquired in time
        """
        handle = self.path.open("a+", encoding="utf-8")
        try:
            await _poll_acquire(lambda: _try_lock(handle, shared=False), timeout, f"lock on '{self.key}'")
        except BaseException:
            handle.close()
            raise

        logger.debug("Acquired mutex on %s", self.key)

        def release() -> None:
            _unlock(handle)
            handle.close()
            logger.debug("Released mutex on %s", self.key)

        return Release(release)


class SharedLock:
    """
    Cross-process shared/exclusive lock keyed by a path.

    Any number of holders may share the lock; exclusive() escalates the
    holder's shared lock and succeeds only once every other holder has let
    go. Releasing the exclusive lock returns the holder to shared mode.
    """

    def __init__(self, key: str | Path):
        self.key = str(key)
        self.path = lock_file_path(key)
        self._handle: IO[Any] | None = None
        self._reacquiring: asyncio.Task | None = None

    @property
    def held(self) -> bool:
        return self._handle is not None

    async def acquire(self, timeout: float | None = None) -> Release:
        """
        Acquire the lock in shared mode.

        Args:
            timeout: Maximum wait in seconds (None waits forever)

        Returns:
            Idempotent release callback

        Raises:
            LockTimeoutError: If the lock is not acquired in time
        """
        if self._handle is not None:
            raise RuntimeError(f"Shared lock on '{self.key}' already held")

        handle = self.path.open("a+", encoding="utf-8")
        try:
            await _poll_acquire(
                lambda: _try_lock(handle, shared=True), timeout, f"shared lock on '{self.key}'"
            )
        except BaseException:
            handle.close()
            raise

        self._handle = handle
        logger.debug("Acquired shared lock on %s", self.key)
        return Release(self._release)

    def _release(self) -> None:
        if self._handle is None:
            return
        if self._reacquiring is not None:
            self._reacquiring.cancel()
            self._reacquiring = None
        _unlock(self._handle)
        self._handle.close()
        self._handle = None
        logger.debug("Released shared lock on %s", self.key)

    async def exclusive(self, timeout: float | None = None) -> Release:
        """
        Escalate the held shared lock to exclusive mode.

        Args:
            timeout: Maximum wait in seconds (None waits forever)

        Returns:
            Release callback that drops back to shared mode

        Raises:
            LockTimeoutError: If other holders do not let go in time
            RuntimeError: If the shared lock is not held
        """
        handle = self._handle
        if handle is None:
            raise RuntimeError(f"Shared lock on '{self.key}' is not held")

        if os.name == "nt":
            # the shared lock is already exclusive
            logger.debug("Escalated to exclusive lock on %s", self.key)
            return Release(lambda: None)

        # flock conversion is not atomic, so drop to unlocked and re-acquire
        _unlock(handle)
        try:
            await _poll_acquire(
                lambda: _try_lock(handle, shared=False), timeout, f"exclusive lock on '{self.key}'"
            )
        except LockTimeoutError:
            await _poll_acquire(
                lambda: _try_lock(handle, shared=True), None, f"shared lock on '{self.key}'"
            )
            raise

        logger.debug("Escalated to exclusive lock on %s", self.key)

        def back_to_shared() -> None:
            if self._handle is not handle:
                return
            # downgrade in place; never waits
            if _try_lock(handle, shared=True):
                logger.debug("Returned to shared lock on %s", self.key)
                return
            logger.warning("Shared lock on %s taken by another escalation, re-acquiring", self.key)
            self._reacquiring = asyncio.get_running_loop().create_task(self._reacquire(handle))

        return Release(back_to_shared)

    async def _reacquire(self, handle: IO[Any]) -> None:
        await _poll_acquire(lambda: _try_lock(handle, shared=True), None, f"shared lock on '{self.key}'")
        logger.debug("Returned to shared lock on %s", self.key)
