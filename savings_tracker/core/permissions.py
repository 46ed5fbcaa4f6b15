"""Role and permission constants shared by the access-control code paths."""

ROLE_OWNER = "owner"
ROLE_SHARED = "shared"
ROLE_NONE = "none"

PERMISSION_READ = "read"
PERMISSION_WRITE = "write"

PERMISSION_CHOICES = (PERMISSION_READ, PERMISSION_WRITE)


def normalize_permission(value: str | None) -> str | None:
    """Return a lowercase permission, or ``None`` when it is not a known value."""

    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate if candidate in PERMISSION_CHOICES else None


__all__ = [
    "PERMISSION_CHOICES",
    "PERMISSION_READ",
    "PERMISSION_WRITE",
    "ROLE_NONE",
    "ROLE_OWNER",
    "ROLE_SHARED",
    "normalize_permission",
]
