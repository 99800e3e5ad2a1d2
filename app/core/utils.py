import uuid
from datetime import datetime, timezone
from typing import Optional

def generate_uuid():
    return str(uuid.uuid4())

def to_epoch_millis(dt: Optional[datetime]) -> Optional[int]:
    """datetime을 epoch 밀리초로 변환합니다. naive datetime은 UTC로 간주합니다."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
