"""
Cache-Control header parsing.

The provider publishes its key set with a Cache-Control header; the
``max-age`` directive decides how long a fetched key set stays fresh.
Parsing is all-or-nothing: one malformed directive discards the whole
header, so a half-understood policy never leaks into expiry decisions.
"""

import enum
import logging
import re
from dataclasses import dataclass
from datetime import timedelta

logger = logging.getLogger(__name__)

_SECONDS = re.compile(r"[0-9]+")


class Cachability(enum.Enum):
    """How the response may be cached."""

    PUBLIC = "public"
    PRIVATE = "private"
    NO_CACHE = "no-cache"
    ONLY_IF_CACHED = "only-if-cached"


@dataclass(frozen=True)
class CachePolicy:
    """
    Structured form of a Cache-Control header.

    Only ``max_age`` feeds expiry computation; the other directives are kept
    so callers can inspect them.
    """

    cachability: Cachability | None = None
    max_age: timedelta | None = None
    s_max_age: timedelta | None = None
    max_stale: timedelta | None = None
    min_fresh: timedelta | None = None
    must_revalidate: bool = False
    proxy_revalidate: bool = False
    immutable: bool = False
    no_store: bool = False
    no_transform: bool = False


_CACHABILITY = {c.value: c for c in Cachability}

_FLAGS = {
    "must-revalidate": "must_revalidate",
    "proxy-revalidate": "proxy_revalidate",
    "immutable": "immutable",
    "no-store": "no_store",
    "no-transform": "no_transform",
}

_DURATIONS = {
    "max-age": "max_age",
    "s-maxage": "s_max_age",
    "max-stale": "max_stale",
    "min-fresh": "min_fresh",
}


def parse_cache_control(raw: str) -> CachePolicy | None:
    """
    Parse the value of a Cache-Control header.

    Args:
        raw: Header value, e.g. "public, max-age=19732, must-revalidate"

    Returns:
        The parsed CachePolicy, or None if any directive is malformed
        (a key-less directive, or a duration directive without a
        non-negative integer value). Unknown directives are ignored.
    """
    fields: dict[str, object] = {}

    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue

        key, sep, value = token.partition("=")
        key = key.strip()
        value = value.strip()

        if not key:
            logger.debug(f"Rejecting Cache-Control {raw!r}: directive without a name")
            return None

        if key in _CACHABILITY:
            fields["cachability"] = _CACHABILITY[key]
        elif key in _FLAGS:
            fields[_FLAGS[key]] = True
        elif key in _DURATIONS:
            if not sep or not _SECONDS.fullmatch(value):
                logger.debug(f"Rejecting Cache-Control {raw!r}: bad value for {key}")
                return None
            fields[_DURATIONS[key]] = timedelta(seconds=int(value))

    return CachePolicy(**fields)
