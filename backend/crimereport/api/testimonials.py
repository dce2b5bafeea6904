"""FastAPI routes for testimonials."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Request, status

from crimereport.api.deps import get_testimonial_service
from crimereport.domain.testimonials import TestimonialService, schemas
from crimereport.infra.auth import AuthenticatedUser, get_officer_user
from crimereport.obs.audit import log_privileged_action

router = APIRouter(prefix="/testimonials", tags=["testimonials"])


@router.get("", response_model=List[schemas.TestimonialOut])
async def list_testimonials_endpoint(
	service: TestimonialService = Depends(get_testimonial_service),
) -> List[schemas.TestimonialOut]:
	items = await service.list_approved()
	return [schemas.TestimonialOut.from_model(item) for item in items]


@router.post("", response_model=schemas.TestimonialOut, status_code=status.HTTP_201_CREATED)
async def create_testimonial_endpoint(
	payload: schemas.TestimonialCreateRequest,
	service: TestimonialService = Depends(get_testimonial_service),
) -> schemas.TestimonialOut:
	testimonial = await service.create(payload.text, payload.rating, payload.author)
	return schemas.TestimonialOut.from_model(testimonial)


@router.patch("/{testimonial_id}/approve", response_model=schemas.TestimonialOut)
async def approve_testimonial_endpoint(
	testimonial_id: str,
	request: Request,
	auth_user: AuthenticatedUser = Depends(get_officer_user),
	service: TestimonialService = Depends(get_testimonial_service),
) -> schemas.TestimonialOut:
	testimonial = await service.approve(testimonial_id, auth_user)
	log_privileged_action(request, auth_user, "testimonial.approve", extra={"testimonial_id": testimonial.id})
	return schemas.TestimonialOut.from_model(testimonial)
