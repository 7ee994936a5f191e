from datetime import datetime, timezone
from typing import Optional

ISO_FMT = "%Y-%m-%dT%H:%M:%S.000Z"


def iso_from_epoch(seconds: int) -> str:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).strftime(ISO_FMT)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).strftime(ISO_FMT)


def parse_iso(val) -> Optional[datetime]:
    if not val or not isinstance(val, str):
        return None
    try:
        dt = datetime.fromisoformat(val.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
