from datetime import datetime

import config

MW_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"


def to_mw_timestamp(value: str) -> str:
    """Accept a 14-digit MediaWiki timestamp or an ISO 8601 UTC timestamp"""
    if config.TIMESTAMP_PATTERN.fullmatch(value):
        timestamp = value
    else:
        match = config.ISO_TIMESTAMP_PATTERN.fullmatch(value)
        if not match:
            raise ValueError(f"Invalid timestamp: {value}")
        timestamp = "".join(match.groups())
    # the patterns only check the shape, not the calendar
    datetime.strptime(timestamp, MW_TIMESTAMP_FORMAT)
    return timestamp


def to_iso_timestamp(value: str) -> str:
    return f"{value[0:4]}-{value[4:6]}-{value[6:8]}T{value[8:10]}:{value[10:12]}:{value[12:14]}Z"
