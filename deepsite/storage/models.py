"""
Data models for chat history storage.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import uuid4


@dataclass
class ChatTurn:
    """One persisted turn of a session. Never mutated after creation."""
    session_id: str = ""
    role: str = ""           # "user" or "assistant"
    content: str = ""
    model: str = ""
    provider: str = ""
    token_count: int = 0
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_message(self) -> dict:
        """Canonical {role, content} form used in conversations."""
        return {"role": self.role, "content": self.content}

    @classmethod
    def from_row(cls, row) -> "ChatTurn":
        return cls(
            id=row["id"],
            session_id=row["session_id"],
            role=row["role"],
            content=row["content"],
            model=row["model"] or "",
            provider=row["provider"] or "",
            token_count=row["token_count"] or 0,
            created_at=row["created_at"],
        )
