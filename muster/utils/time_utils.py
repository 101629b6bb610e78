"""Time utils module."""

from datetime import datetime

import pytz


def to_utc_datetime(timestamp: int) -> datetime:
    """
    Convert UNIX timestamp to timezone aware UTC datetime.

    :param timestamp: UNIX timestamp with seconds accuracy
    :return: Timezone aware datetime
    """
    return datetime.fromtimestamp(timestamp, tz=pytz.utc)


def utc_time_now() -> datetime:
    """
    Get current UTC timezone aware time.

    :return: Timezone aware datetime
    """
    return datetime.now(tz=pytz.utc)


def utc_timestamp_now() -> int:
    """
    Get current UNIX timestamp.

    :return: UNIX timestamp with seconds accuracy
    """
    return int(utc_time_now().timestamp())


def format_eta(seconds: int) -> str:
    """
    Format the time left until an event as a short string, such as
    "2h 5m" or "now" if the event has started.

    :param seconds: Seconds until event start
    :return: Formatted time left
    """
    if seconds <= 0:
        return "now"

    hours, remainder = divmod(seconds, 3600)
    minutes = remainder // 60
    if hours > 0:
        return f"{hours}h {minutes}m" if minutes > 0 else f"{hours}h"

    return f"{minutes}m"
