"""
Tests for event registration, including concurrency scenarios.
"""

import asyncio

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from eventhub.models.event import Event
from eventhub.models.registration import Registration
from eventhub.services.exceptions import (
    ConflictError,
    EventFullError,
    ForbiddenError,
    NotFoundError,
    StateError,
)
from eventhub.services.registration_service import RegistrationService
from tests.conftest import headers_for


async def registration_count(session, event_id: int) -> int:
    return await session.scalar(select(Event.registration_count).where(Event.id == event_id))


async def confirmed_rows(session, event_id: int) -> int:
    return await session.scalar(
        select(func.count(Registration.id)).where(
            Registration.event_id == event_id, Registration.status == "confirmed",
        )
    )


# ---------------------------------------------------------------- HTTP


@pytest.mark.asyncio
async def test_register_for_event(client: AsyncClient, db_session, published_event, attendee, attendee_headers):
    """Successful registration takes one spot."""
    response = await client.post(f"/api/v1/events/{published_event.id}/register", headers=attendee_headers)
    assert response.status_code == 201
    data = response.json()
    assert data["event_id"] == published_event.id
    assert data["user_id"] == attendee.id
    assert data["status"] == "confirmed"
    assert data["registered_at"]

    assert await registration_count(db_session, published_event.id) == 1


@pytest.mark.asyncio
async def test_register_twice(client: AsyncClient, published_event, attendee_headers):
    await client.post(f"/api/v1/events/{published_event.id}/register", headers=attendee_headers)
    response = await client.post(f"/api/v1/events/{published_event.id}/register", headers=attendee_headers)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "ALREADY_REGISTERED"


@pytest.mark.asyncio
async def test_register_requires_auth(client: AsyncClient, published_event):
    response = await client.post(f"/api/v1/events/{published_event.id}/register")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_register_for_draft_event(client: AsyncClient, draft_event, attendee_headers):
    """Unpublished events cannot be joined and do not reveal themselves."""
    response = await client.post(f"/api/v1/events/{draft_event.id}/register", headers=attendee_headers)
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "EVENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_register_missing_event(client: AsyncClient, attendee_headers):
    response = await client.post("/api/v1/events/99999/register", headers=attendee_headers)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_admin_cannot_register(client: AsyncClient, published_event, admin_headers):
    response = await client.post(f"/api/v1/events/{published_event.id}/register", headers=admin_headers)
    assert response.status_code == 403
    assert response.json()["detail"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_last_spot_swap(client: AsyncClient, db_session, make_event, organizer, make_user):
    """
    Capacity 1: A gets the spot, B is refused; after A leaves, B gets it.
    """
    event = await make_event(organizer, capacity=1)
    user_a = headers_for(await make_user("user_a"))
    user_b = headers_for(await make_user("user_b"))

    assert (await client.post(f"/api/v1/events/{event.id}/register", headers=user_a)).status_code == 201
    assert await registration_count(db_session, event.id) == 1

    response = await client.post(f"/api/v1/events/{event.id}/register", headers=user_b)
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "EVENT_FULL"

    response = await client.delete(f"/api/v1/events/{event.id}/register", headers=user_a)
    assert response.status_code == 200
    assert response.json() == {
        "message": "Registration cancelled successfully",
        "event_id": event.id,
        "status": "cancelled",
    }
    assert await registration_count(db_session, event.id) == 0

    assert (await client.post(f"/api/v1/events/{event.id}/register", headers=user_b)).status_code == 201
    assert await registration_count(db_session, event.id) == 1


@pytest.mark.asyncio
async def test_unregister_without_registration(client: AsyncClient, published_event, attendee_headers):
    response = await client.delete(f"/api/v1/events/{published_event.id}/register", headers=attendee_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "NOT_REGISTERED"


@pytest.mark.asyncio
async def test_list_event_registrations(
    client: AsyncClient, published_event, organizer_headers, admin_headers, attendee, attendee_headers,
):
    await client.post(f"/api/v1/events/{published_event.id}/register", headers=attendee_headers)

    response = await client.get(f"/api/v1/events/{published_event.id}/registrations", headers=organizer_headers)
    assert response.status_code == 200
    rows = response.json()
    assert len(rows) == 1
    assert rows[0]["user_id"] == attendee.id
    assert rows[0]["user_email"] == "attendee@example.com"
    assert rows[0]["username"] == "attendee"

    response = await client.get(f"/api/v1/events/{published_event.id}/registrations", headers=admin_headers)
    assert response.status_code == 200

    response = await client.get(f"/api/v1/events/{published_event.id}/registrations", headers=attendee_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_my_registrations(client: AsyncClient, make_event, organizer, attendee_headers):
    kept = await make_event(organizer, title="Kept Registration")
    dropped = await make_event(organizer, title="Dropped Registration")
    await client.post(f"/api/v1/events/{kept.id}/register", headers=attendee_headers)
    await client.post(f"/api/v1/events/{dropped.id}/register", headers=attendee_headers)
    await client.delete(f"/api/v1/events/{dropped.id}/register", headers=attendee_headers)

    response = await client.get("/api/v1/users/me/registrations", headers=attendee_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    assert data["items"][0]["event"]["title"] == "Kept Registration"
    assert data["items"][0]["event"]["organizer"]["username"] == "organizer"
    assert data["items"][0]["status"] == "confirmed"


# ---------------------------------------------------------------- service


@pytest.mark.asyncio
async def test_register_unregister_register_reuses_row(db_session, published_event, attendee):
    service = RegistrationService(db_session)

    first = await service.register(published_event.id, attendee.id, attendee.role)
    cancelled = await service.unregister(published_event.id, attendee.id)
    again = await service.register(published_event.id, attendee.id, attendee.role)

    assert first.id == cancelled.id == again.id
    assert again.status == "confirmed"
    assert await registration_count(db_session, published_event.id) == 1
    rows = await db_session.scalar(
        select(func.count(Registration.id)).where(Registration.event_id == published_event.id)
    )
    assert rows == 1


@pytest.mark.asyncio
async def test_unregister_twice_keeps_counter(db_session, published_event, attendee):
    service = RegistrationService(db_session)
    await service.register(published_event.id, attendee.id, attendee.role)
    await service.unregister(published_event.id, attendee.id)

    with pytest.raises(StateError):
        await service.unregister(published_event.id, attendee.id)
    assert await registration_count(db_session, published_event.id) == 0


@pytest.mark.asyncio
async def test_register_fills_event(db_session, make_event, organizer, make_user):
    """
    Filling the last spot succeeds; the next register is refused. The refusal
    rolls the session back, so ids are read up front.
    """
    event_id = (await make_event(organizer, capacity=3)).id
    service = RegistrationService(db_session)
    for name in ("fill_one", "fill_two", "fill_three"):
        user = await make_user(name)
        await service.register(event_id, user.id, user.role)

    late = await make_user("fill_late")
    late_id, late_role = late.id, late.role
    with pytest.raises(EventFullError):
        await service.register(event_id, late_id, late_role)

    assert await registration_count(db_session, event_id) == 3
    assert await confirmed_rows(db_session, event_id) == 3


@pytest.mark.asyncio
async def test_reactivation_refused_when_full(db_session, make_event, organizer, make_user):
    """A cancelled registration stays cancelled if the spot was taken meanwhile."""
    event_id = (await make_event(organizer, capacity=1)).id
    leaver = await make_user("leaver")
    leaver_id, role = leaver.id, leaver.role
    taker = await make_user("taker")
    service = RegistrationService(db_session)

    await service.register(event_id, leaver_id, role)
    await service.unregister(event_id, leaver_id)
    await service.register(event_id, taker.id, taker.role)

    with pytest.raises(EventFullError):
        await service.register(event_id, leaver_id, role)

    status = await db_session.scalar(
        select(Registration.status).where(Registration.event_id == event_id, Registration.user_id == leaver_id)
    )
    assert status == "cancelled"
    assert await registration_count(db_session, event_id) == 1


@pytest.mark.asyncio
async def test_service_errors(db_session, published_event, draft_event, attendee, admin):
    service = RegistrationService(db_session)

    with pytest.raises(NotFoundError):
        await service.register(draft_event.id, attendee.id, attendee.role)
    with pytest.raises(ForbiddenError):
        await service.register(published_event.id, admin.id, admin.role)

    await service.register(published_event.id, attendee.id, attendee.role)
    with pytest.raises(ConflictError) as exc_info:
        await service.register(published_event.id, attendee.id, attendee.role)
    assert exc_info.value.code.value == "ALREADY_REGISTERED"


# ---------------------------------------------------------------- concurrency


@pytest.mark.asyncio
async def test_concurrent_registrations_never_overbook(session_factory, db_session, make_event, organizer, make_user):
    """
    20 users race for 5 spots, each on its own session/connection.
    Exactly 5 succeed, the rest are refused with EventFullError.
    """
    capacity, contenders = 5, 20
    event = await make_event(organizer, capacity=capacity)
    users = [await make_user(f"racer_{i}") for i in range(contenders)]

    async def attempt(user):
        async with session_factory() as session:
            try:
                await RegistrationService(session).register(event.id, user.id, user.role)
                return "confirmed"
            except EventFullError:
                return "full"

    results = await asyncio.gather(*(attempt(user) for user in users))

    assert results.count("confirmed") == capacity
    assert results.count("full") == contenders - capacity
    assert await registration_count(db_session, event.id) == capacity
    assert await confirmed_rows(db_session, event.id) == capacity


@pytest.mark.asyncio
async def test_concurrent_duplicate_registration_by_same_user(session_factory, db_session, published_event, attendee):
    """The same user firing several requests at once ends up registered once."""

    async def attempt():
        async with session_factory() as session:
            try:
                await RegistrationService(session).register(published_event.id, attendee.id, attendee.role)
                return "confirmed"
            except ConflictError as exc:
                return exc.code.value

    results = await asyncio.gather(*(attempt() for _ in range(5)))

    assert results.count("confirmed") == 1
    assert set(results) - {"confirmed"} <= {"ALREADY_REGISTERED"}
    assert await registration_count(db_session, published_event.id) == 1
    assert await confirmed_rows(db_session, published_event.id) == 1
