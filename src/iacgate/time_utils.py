"""Clock used to decide whether a suppression entry has expired.

The current date can be pinned from the environment so repeated scans of the
same inputs agree:

``IACGATE_CLOCK_ISO``
    ISO-8601 timestamp; only its date part is used for expiry.
``IACGATE_CLOCK_EPOCH``, then ``SOURCE_DATE_EPOCH``
    Unix seconds; the first integer value wins.

Without any of them the wall clock is used.
"""

from __future__ import annotations

import logging
import os
import time
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

ISO_VARIABLE = "IACGATE_CLOCK_ISO"
EPOCH_VARIABLES = ("IACGATE_CLOCK_EPOCH", "SOURCE_DATE_EPOCH")


def _pinned_epoch() -> Optional[int]:
    for name in EPOCH_VARIABLES:
        raw = os.getenv(name)
        if raw is None:
            continue
        try:
            return int(raw)
        except ValueError:
            logger.debug("ignoring non-integer %s=%r", name, raw)
    return None


def _utc(epoch: int) -> datetime:
    return datetime.fromtimestamp(epoch, tz=timezone.utc)


def deterministic_epoch() -> int:
    pinned = _pinned_epoch()
    return pinned if pinned is not None else int(time.time())


def deterministic_isoformat() -> str:
    """UTC timestamp for report metadata, e.g. ``2025-06-15T00:00:00Z``."""

    override = os.getenv(ISO_VARIABLE)
    if override:
        return override
    return _utc(deterministic_epoch()).strftime("%Y-%m-%dT%H:%M:%SZ")


def deterministic_today() -> date:
    """Date compared against suppression expiry; entries expire after this day."""

    stamp = os.getenv(ISO_VARIABLE)
    if stamp:
        try:
            return date.fromisoformat(stamp[:10])
        except ValueError:
            logger.warning("%s=%r is not an ISO date; falling back to the epoch clock", ISO_VARIABLE, stamp)
    return _utc(deterministic_epoch()).date()
