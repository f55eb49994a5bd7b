from __future__ import annotations

UNKNOWN_UPTIME = "n/a"


def format_uptime(seconds: float | None) -> str:
    """Render a duration the way the dashboard shows it.

    Examples:
        >>> format_uptime(9240)
        '2h 34m'
        >>> format_uptime(45)
        '0h 0m'
        >>> format_uptime(200_000)
        '2d 7h 33m'
        >>> format_uptime(None)
        'n/a'
    """
    if seconds is None or seconds < 0:
        return UNKNOWN_UPTIME

    total_minutes = int(seconds) // 60
    days, remainder = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(remainder, 60)
    if days:
        return f"{days}d {hours}h {minutes}m"
    return f"{hours}h {minutes}m"
