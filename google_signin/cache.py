"""
Key set cache with single-flight refresh.

Any number of concurrent tasks may ask the cache for a currently valid key
set. While the cached set is fresh they get it without I/O. Once it expires,
the first caller starts one refresh task and every other caller joins that
same task, so N concurrent callers cause exactly one network fetch and all
observe the same key set (or the same error).

The refresh task belongs to the cache, not to any caller: cancelling one
waiting caller leaves the fetch running for the others. A failed refresh
returns the cache to its previous state so the next call starts a new
attempt.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from google_signin.errors import KeySetError
from google_signin.keys import KeySet

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    """Anything that can download a key set and its expiry."""

    async def fetch(self) -> tuple[KeySet, float | None]: ...


@dataclass(frozen=True)
class _Uninitialized:
    pass


@dataclass(frozen=True)
class _Ready:
    key_set: KeySet
    expiry: float | None


@dataclass(frozen=True)
class _Refreshing:
    task: "asyncio.Task[KeySet]"


_State = _Uninitialized | _Ready | _Refreshing


class KeyCache:
    """
    Owns the current key set and coordinates refreshes.

    Safe for any number of concurrent tasks on one event loop. State changes
    happen only in code without await points, so they are atomic with
    respect to other tasks.

    Args:
        fetcher: Source of fresh key sets (e.g. KeySetFetcher)
        clock: Monotonic clock shared with the fetcher's expiry computation
        stale_if_error: On a failed refresh, hand out the previous (expired)
            key set instead of raising, when one exists

    Example:
        cache = KeyCache(KeySetFetcher())
        key_set = await cache.get_or_refresh()
    """

    def __init__(
        self,
        fetcher: Fetcher,
        clock: Callable[[], float] | None = None,
        stale_if_error: bool = False,
    ) -> None:
        self._fetcher = fetcher
        self._clock = clock or time.monotonic
        self._stale_if_error = stale_if_error
        self._state: _State = _Uninitialized()
        self._fetch_count = 0

    def _expired(self, state: _Ready) -> bool:
        return state.expiry is None or state.expiry <= self._clock()

    def _current_or_refresh(self) -> "KeySet | asyncio.Task[KeySet]":
        """Return the fresh key set, or the refresh task to wait on."""
        state = self._state

        if isinstance(state, _Ready) and not self._expired(state):
            logger.debug("Key set cache hit")
            return state.key_set

        if isinstance(state, _Refreshing):
            logger.debug("Joining in-flight key set refresh")
            return state.task

        previous = state if isinstance(state, _Ready) else None
        task = asyncio.get_running_loop().create_task(self._refresh(previous))
        task.add_done_callback(_retrieve_exception)
        self._state = _Refreshing(task)
        return task

    async def _refresh(self, previous: _Ready | None) -> KeySet:
        self._fetch_count += 1
        try:
            key_set, expiry = await self._fetcher.fetch()
        except KeySetError as e:
            self._state = previous if previous is not None else _Uninitialized()
            if self._stale_if_error and previous is not None:
                logger.warning(f"Key set refresh failed, serving stale keys: {e}")
                return previous.key_set
            logger.warning(f"Key set refresh failed: {e}")
            raise
        except BaseException:
            self._state = previous if previous is not None else _Uninitialized()
            raise

        self._state = _Ready(key_set, expiry)
        if expiry is None:
            logger.info(f"Key set updated with {len(key_set)} keys, no max-age given")
        else:
            logger.info(
                f"Key set updated with {len(key_set)} keys, "
                f"expires in {max(0.0, expiry - self._clock()):.0f}s"
            )
        return key_set

    async def get_or_refresh(self) -> KeySet:
        """
        Get a currently valid key set, refreshing it if needed.

        Returns:
            The cached KeySet if fresh, otherwise the result of the (shared)
            refresh

        Raises:
            KeySetError: If the refresh this call waited on failed
        """
        current = self._current_or_refresh()
        if isinstance(current, KeySet):
            return current
        # shield: cancelling this caller must not cancel the shared fetch
        return await asyncio.shield(current)

    def clear(self) -> None:
        """
        Drop the cached key set so the next call fetches again.

        A refresh already in flight is left alone and still installs its
        result when it completes.
        """
        if not isinstance(self._state, _Refreshing):
            self._state = _Uninitialized()
        logger.debug("Key set cache cleared")

    @property
    def fetch_count(self) -> int:
        """Number of fetches started by this cache."""
        return self._fetch_count

    @property
    def is_valid(self) -> bool:
        """Check if a fresh key set is cached."""
        state = self._state
        return isinstance(state, _Ready) and not self._expired(state)

    @property
    def expires_in(self) -> float | None:
        """Get seconds until the cached key set expires, or None if nothing is cached."""
        state = self._state
        if not isinstance(state, _Ready):
            return None
        if state.expiry is None:
            return 0.0
        return max(0.0, state.expiry - self._clock())


def _retrieve_exception(task: "asyncio.Task[KeySet]") -> None:
    # Every caller may have been cancelled before the refresh finished
    if not task.cancelled():
        task.exception()
