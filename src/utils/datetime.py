# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for SchoolConnect.

All timestamps are stored in UTC and every Python datetime handled by the
services is timezone-aware. SQLite drops tzinfo on round-trip, so values read
back from the database go through ensure_utc() before comparison or output.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime.

    Used as the default for every timestamp column and for sent_at,
    signed_at and published_at stamps.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Attach or convert to UTC.

    Naive values are read back from SQLite and are taken to be UTC already.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
