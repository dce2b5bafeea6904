"""Testimonials domain exports."""

from .service import TestimonialService

__all__ = ["TestimonialService"]
