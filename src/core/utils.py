"""Time and currency helpers."""

from datetime import datetime, timedelta, timezone

# Japan has no daylight saving time, a fixed offset is exact
JST = timezone(timedelta(hours=9), "JST")


def japan_now() -> datetime:
    """Current time in Japan (timezone-aware)"""
    return datetime.now(JST)


def format_jpy(amount: float) -> str:
    """Format an amount as whole yen, e.g. ``¥5,001,000``"""
    sign = "-" if amount < 0 else ""
    return f"{sign}¥{abs(amount):,.0f}"
