"""Domain models for crime reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass(slots=True)
class ReportFile:
    url: str
    original_name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"url": self.url, "originalName": self.original_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportFile":
        return cls(url=str(data["url"]), original_name=str(data.get("originalName") or ""))


@dataclass(slots=True)
class ReportMessage:
    text: str
    sender: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"text": self.text, "sender": self.sender, "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportMessage":
        return cls(
            text=str(data["text"]),
            sender=str(data.get("sender") or ""),
            timestamp=datetime.fromisoformat(str(data["timestamp"])),
        )


@dataclass(slots=True)
class Report:
    """Persisted crime report.

    Everything except `messages` is fixed at creation.
    """

    id: str
    reference_number: str
    crime_type: str
    location: str
    description: str
    is_anonymous: bool
    user_id: Optional[str]
    created_at: datetime
    files: List[ReportFile] = field(default_factory=list)
    messages: List[ReportMessage] = field(default_factory=list)

    @property
    def is_owned(self) -> bool:
        return self.user_id is not None

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id is not None and self.user_id == str(user_id)


@dataclass(frozen=True, slots=True)
class ReportFields:
    """Free-text fields supplied by the submitter."""

    crime_type: str
    location: str
    description: str
    is_anonymous: bool = False
