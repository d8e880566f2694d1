import secrets
import string
import time
from datetime import datetime, timezone

from app.core.config import settings


def utcnow() -> datetime:
    # Naive UTC, matching how instants are stored
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def generate_room_id() -> str:
    millis = int(time.time() * 1000)
    alphabet = string.ascii_lowercase + string.digits
    suffix = ''.join(secrets.choice(alphabet) for i in range(9))
    return f"{settings.ROOM_ID_PREFIX}_{millis}_{suffix}"
