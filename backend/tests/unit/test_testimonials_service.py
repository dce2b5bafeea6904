from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from crimereport.domain.exceptions import ForbiddenError, NotFoundError, ValidationError
from crimereport.domain.testimonials import models
from crimereport.domain.testimonials import service as testimonial_service
from crimereport.infra.auth import AuthenticatedUser
from crimereport.infra.postgres import POOL_RETRY_SECONDS
from crimereport.settings import settings

OFFICER = AuthenticatedUser(id="officer-1", roles=("officer",))


@pytest.fixture
def service():
    return testimonial_service.TestimonialService(testimonial_service.TestimonialRepository(settings))


@pytest.mark.asyncio
async def test_create_defaults_author_and_starts_unapproved(service):
    item = await service.create("  Quick response  ", 5)
    assert item.author == "Anonymous"
    assert item.text == "Quick response"
    assert item.approved is False
    assert await service.list_approved() == []


@pytest.mark.asyncio
async def test_create_validates_text_and_rating(service):
    with pytest.raises(ValidationError) as exc:
        await service.create("", 0)
    assert [error["field"] for error in exc.value.errors] == ["text", "rating"]


@pytest.mark.asyncio
async def test_approve_requires_officer(service):
    item = await service.create("Helpful", 4, "Sam")
    with pytest.raises(ForbiddenError):
        await service.approve(item.id, AuthenticatedUser(id="u1"))
    approved = await service.approve(item.id, OFFICER)
    assert approved.approved is True
    assert [t.id for t in await service.list_approved()] == [item.id]


@pytest.mark.asyncio
async def test_approve_missing_is_not_found(service):
    with pytest.raises(NotFoundError) as exc:
        await service.approve("missing", OFFICER)
    assert exc.value.detail == "testimonial_not_found"


@pytest.mark.asyncio
async def test_list_approved_returns_ten_newest(service):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for index in range(12):
        await service.repository.insert(
            models.Testimonial(
                id=f"t{index:02d}",
                text=f"note {index}",
                rating=5,
                author="A",
                approved=index != 11,
                created_at=base + timedelta(minutes=index),
            )
        )
    items = await service.list_approved()
    assert len(items) == 10
    assert items[0].id == "t10"
    assert items[-1].id == "t01"


@pytest.mark.asyncio
async def test_failed_pool_lookup_waits_before_retrying(monkeypatch):
    attempts = []
    clock = SimpleNamespace(now=50.0)

    async def _unreachable():
        attempts.append(clock.now)
        raise OSError("connection refused")

    monkeypatch.setattr(testimonial_service, "get_pool", _unreachable)
    monkeypatch.setattr(testimonial_service, "time", SimpleNamespace(monotonic=lambda: clock.now))
    repository = testimonial_service.TestimonialRepository(settings)

    assert await repository.list_approved(10) == []
    assert await repository.list_approved(10) == []
    assert attempts == [50.0]

    clock.now += POOL_RETRY_SECONDS
    assert await repository.list_approved(10) == []
    assert len(attempts) == 2
