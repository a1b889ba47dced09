"""
Opaque keyset cursors for the admin listing.
A cursor encodes the (created_at, id) of the last row on a page; the next page
continues strictly after it in (created_at desc, id desc) order.
"""
import base64
import json
from datetime import datetime

from core.exceptions import ValidationError


def encode_cursor(created_at: datetime, record_id: str) -> str:
    raw = json.dumps({"c": created_at.isoformat(), "i": record_id}, separators=(",", ":"))
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, str]:
    """Return (created_at, id); raise ValidationError for anything that was not produced by encode_cursor."""
    try:
        padded = cursor + "=" * (-len(cursor) % 4)
        data = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        return datetime.fromisoformat(data["c"]), str(data["i"])
    except (ValueError, KeyError, TypeError, UnicodeError) as e:
        raise ValidationError("Invalid pagination cursor", fields=["cursor"]) from e
