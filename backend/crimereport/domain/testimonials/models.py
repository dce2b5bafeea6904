"""Domain models for testimonials."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

DEFAULT_AUTHOR = "Anonymous"


@dataclass(slots=True)
class Testimonial:
    id: str
    text: str
    rating: int
    author: str
    approved: bool
    created_at: datetime
