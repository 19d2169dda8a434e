"""Size formatting helpers for listing statistics."""

_UNITS = "KMGTPE"


def format_size(size: int) -> str:
    """Human-readable size with a 1024 base, e.g. ``512 B`` or ``1.5 KB``."""
    unit = 1024
    if size < unit:
        return f"{size} B"
    div, exp = unit, 0
    n = size // unit
    while n >= unit and exp < len(_UNITS) - 1:
        div *= unit
        exp += 1
        n //= unit
    return f"{size / div:.1f} {_UNITS[exp]}B"
