from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
