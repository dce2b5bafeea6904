"""Pydantic schemas for the testimonials API."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from crimereport.domain.testimonials import models

TEXT_MAX_LENGTH = 2000
AUTHOR_MAX_LENGTH = 120


class TestimonialCreateRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=TEXT_MAX_LENGTH)
    rating: int = Field(..., ge=1, le=5)
    author: Optional[str] = Field(default=None, max_length=AUTHOR_MAX_LENGTH)


class TestimonialOut(BaseModel):
    id: str
    text: str
    rating: int
    author: str
    approved: bool
    created_at: datetime = Field(alias="createdAt")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_model(cls, testimonial: models.Testimonial) -> "TestimonialOut":
        return cls(
            id=testimonial.id,
            text=testimonial.text,
            rating=testimonial.rating,
            author=testimonial.author,
            approved=testimonial.approved,
            created_at=testimonial.created_at,
        )
