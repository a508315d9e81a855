"""Server-Sent Events formatting utilities for the turn processor.

All SSE events follow the format: data: {json}\\n\\n
Event types: text, end, error
"""

import json
import uuid
from datetime import date, datetime
from typing import Any


class _SSEEncoder(json.JSONEncoder):
    """JSON encoder that handles UUID and datetime objects.

    Bot messages carry ``created_at``/``updated_at`` datetimes that the stdlib
    ``json`` module cannot serialise.
    """

    def default(self, o: Any) -> Any:
        if isinstance(o, uuid.UUID):
            return str(o)
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return super().default(o)


def _dumps(obj: Any) -> str:
    """Serialise *obj* to JSON using the SSE-safe encoder."""
    return json.dumps(obj, cls=_SSEEncoder, ensure_ascii=False)


def sse_text(content: str) -> str:
    """Format an incremental text event carrying newly revealed output."""
    return f"data: {_dumps({'type': 'text', 'content': content})}\n\n"


def sse_end(message: dict) -> str:
    """Format the terminal event carrying the finished bot message."""
    return f"data: {_dumps({'type': 'end', 'content': message})}\n\n"


def sse_error(content: str, **extra: Any) -> str:
    """Format a terminal error event.

    Extra keyword fields are merged into the payload, e.g. ``persisted=False``
    together with the generated ``message`` when a save fails after the model
    finished.
    """
    payload = {"type": "error", "content": content}
    payload.update(extra)
    return f"data: {_dumps(payload)}\n\n"
