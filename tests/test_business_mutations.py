import uuid

import pytest
from sqlalchemy import func, select

from thorbis.core import database
from thorbis.models import Business, BusinessHours, User
from thorbis.models.enums import BusinessStatus, UserRole
from thorbis.services.business_service import NEXT_STEPS, slugify
from thorbis.services.notifications import APPROVAL_FUNCTION

from tests.factories import auth_headers, fresh, seed_business, seed_category, seed_user

LIST_URL = "/api/v2/businesses"
DETAIL_URL = "/api/v2/businesses/{}"


def _payload(**overrides):
    payload = {
        "name": "Joe's Pizza",
        "description": "Thin crust pizza by the slice since 1975.",
        "address": "7 Carmine St",
        "city": "New York",
        "state": "NY",
        "zipCode": "10014",
        "phone": "(212) 366-1182",
        "website": "https://joespizza.example",
        "categories": ["pizza"],
        "priceRange": "$",
        "features": ["takeout", "takeout", "late-night"],
        "hours": {"Monday": {"open": "10:00", "close": "23:00"}, "sunday": {"closed": True}},
    }
    payload.update(overrides)
    return payload


async def _count_businesses():
    async with database.get_sessionmaker()() as s:
        return await s.scalar(select(func.count()).select_from(Business))


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Joe's Pizza", "joes-pizza"),
        ("  Café  & Bar!! ", "caf-bar"),
        ("A -- B", "a-b"),
        ("!!!", "business"),
    ],
)
def test_slugify(name, expected):
    assert slugify(name) == expected


@pytest.mark.asyncio
async def test_create_business(client, session, notifier):
    await seed_category(session, "pizza")
    await session.commit()
    user_id = uuid.uuid4()

    resp = await client.post(LIST_URL, json=_payload(), headers=auth_headers(user_id, email="joe@example.com"))

    assert resp.status_code == 201
    body = resp.json()
    business = body["data"]["business"]
    assert business["slug"] == "joes-pizza"
    assert business["status"] == "pending"
    assert business["verified"] is False
    assert business["rating"] == 0
    assert business["features"] == ["late-night", "takeout"]
    assert business["categories"][0]["slug"] == "pizza"
    assert {h["dayOfWeek"] for h in business["hours"]} == {0, 1}
    assert body["data"]["nextSteps"] == NEXT_STEPS
    assert resp.headers["cache-control"] == "private, no-cache"

    owner = await fresh(User, user_id)
    assert owner.email == "joe@example.com"

    assert notifier.calls == [
        (
            APPROVAL_FUNCTION,
            {"businessId": business["id"], "businessName": "Joe's Pizza", "ownerEmail": "joe@example.com"},
        )
    ]


@pytest.mark.asyncio
async def test_create_geocodes_when_coordinates_missing(client, session, geocoder):
    await seed_category(session, "pizza")
    await session.commit()

    resp = await client.post(LIST_URL, json=_payload(), headers=auth_headers(uuid.uuid4(), email="a@example.com"))
    assert resp.json()["data"]["business"]["coordinates"] == {"lat": 37.7749, "lng": -122.4194}
    assert geocoder.addresses == ["7 Carmine St, New York, NY 10014"]

    given = await client.post(
        LIST_URL,
        json=_payload(name="Joe's Other Pizza", latitude=40.7306, longitude=-74.0027),
        headers=auth_headers(uuid.uuid4(), email="b@example.com"),
    )
    assert given.json()["data"]["business"]["coordinates"] == {"lat": 40.7306, "lng": -74.0027}
    assert len(geocoder.addresses) == 1


@pytest.mark.asyncio
async def test_duplicate_names_get_numbered_slugs(client, session):
    await seed_category(session, "pizza")
    await session.commit()
    headers = auth_headers(uuid.uuid4(), email="joe@example.com")

    slugs = []
    for _ in range(3):
        resp = await client.post(LIST_URL, json=_payload(), headers=headers)
        slugs.append(resp.json()["data"]["business"]["slug"])

    assert slugs == ["joes-pizza", "joes-pizza-1", "joes-pizza-2"]


@pytest.mark.asyncio
async def test_create_without_categories_is_rejected(client, session):
    resp = await client.post(LIST_URL, json=_payload(categories=[]), headers=auth_headers(uuid.uuid4()))

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert any(d["field"] == "categories" for d in error["details"])
    assert await _count_businesses() == 0


@pytest.mark.asyncio
async def test_create_with_unknown_category_is_rejected(client, session):
    await seed_category(session, "pizza")
    await session.commit()

    resp = await client.post(
        LIST_URL, json=_payload(categories=["pizza", "spaceships"]), headers=auth_headers(uuid.uuid4())
    )

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "INVALID_CATEGORIES"
    assert error["details"] == {"invalid": ["spaceships"]}
    assert await _count_businesses() == 0


@pytest.mark.asyncio
async def test_create_requires_verified_email(client, session):
    resp = await client.post(LIST_URL, json=_payload(), headers=auth_headers(uuid.uuid4(), email_verified=False))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "EMAIL_NOT_VERIFIED"

    anonymous = await client.post(LIST_URL, json=_payload())
    assert anonymous.status_code == 401


@pytest.mark.asyncio
async def test_create_rejects_incomplete_hours(client, session):
    await seed_category(session, "pizza")
    await session.commit()

    resp = await client.post(
        LIST_URL, json=_payload(hours={"monday": {"open": "09:00"}}), headers=auth_headers(uuid.uuid4())
    )
    assert resp.status_code == 400
    assert await _count_businesses() == 0


@pytest.mark.asyncio
async def test_update_replaces_categories(client, session):
    owner = await seed_user(session)
    pizza = await seed_category(session, "pizza")
    await seed_category(session, "pasta")
    await seed_category(session, "wine-bar")
    business = await seed_business(session, owner, "Trattoria", categories=[pizza], features=["patio"])
    await session.commit()

    resp = await client.put(
        DETAIL_URL.format(business.id),
        json={"categories": ["pasta", "wine-bar"], "features": ["wifi"]},
        headers=auth_headers(owner.id),
    )

    assert resp.status_code == 200
    updated = resp.json()["data"]["business"]
    assert [c["slug"] for c in updated["categories"]] == ["pasta", "wine-bar"]
    assert updated["features"] == ["wifi"]
    assert resp.json()["data"]["message"] == "Business updated successfully"


@pytest.mark.asyncio
async def test_update_name_regenerates_slug(client, session):
    owner = await seed_user(session)
    await seed_business(session, owner, "Taken Name")
    business = await seed_business(session, owner, "Old Name")
    await session.commit()

    resp = await client.put(
        DETAIL_URL.format("old-name"), json={"name": "Taken Name"}, headers=auth_headers(owner.id)
    )
    assert resp.json()["data"]["business"]["slug"] == "taken-name-1"

    same = await client.put(
        DETAIL_URL.format(business.id), json={"name": "Taken Name"}, headers=auth_headers(owner.id)
    )
    assert same.json()["data"]["business"]["slug"] == "taken-name-1"


@pytest.mark.asyncio
async def test_update_hours_replaces_rows(client, session):
    owner = await seed_user(session)
    business = await seed_business(session, owner, "Clock Shop", hours={1: (None, None), 2: (None, None)})
    await session.commit()

    resp = await client.put(
        DETAIL_URL.format(business.id),
        json={"hours": {"friday": {"open": "08:00", "close": "12:30"}}},
        headers=auth_headers(owner.id),
    )
    hours = resp.json()["data"]["business"]["hours"]
    assert hours == [{"dayOfWeek": 5, "openTime": "08:00", "closeTime": "12:30", "isClosed": False}]

    async with database.get_sessionmaker()() as s:
        count = await s.scalar(select(func.count()).select_from(BusinessHours))
    assert count == 1


@pytest.mark.asyncio
async def test_update_requires_owner_or_admin(client, session):
    owner = await seed_user(session)
    stranger = await seed_user(session, email="stranger@example.com")
    business = await seed_business(session, owner, "Guarded")
    await session.commit()

    resp = await client.put(
        DETAIL_URL.format(business.id), json={"phone": "555-0100"}, headers=auth_headers(stranger.id)
    )
    assert resp.status_code == 403

    empty = await client.put(DETAIL_URL.format(business.id), json={}, headers=auth_headers(owner.id))
    assert empty.status_code == 400


@pytest.mark.asyncio
async def test_admin_update_publishes_pending_business(client, session):
    owner = await seed_user(session)
    admin = await seed_user(session, email="admin@example.com", role=UserRole.ADMIN)
    business = await seed_business(session, owner, "Pending Place", status=BusinessStatus.PENDING)
    await session.commit()

    by_owner = await client.put(
        DETAIL_URL.format(business.id), json={"phone": "555-0101"}, headers=auth_headers(owner.id)
    )
    assert by_owner.json()["data"]["business"]["status"] == "pending"

    by_admin = await client.put(
        DETAIL_URL.format(business.id), json={"phone": "555-0102"}, headers=auth_headers(admin.id, role=UserRole.ADMIN)
    )
    assert by_admin.json()["data"]["business"]["status"] == "published"


@pytest.mark.asyncio
async def test_update_unknown_business(client, session):
    owner = await seed_user(session)
    await session.commit()

    resp = await client.put(DETAIL_URL.format("nowhere"), json={"phone": "555-0100"}, headers=auth_headers(owner.id))
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "BUSINESS_NOT_FOUND"


@pytest.mark.asyncio
async def test_only_admin_can_delete(client, session):
    owner = await seed_user(session)
    admin = await seed_user(session, email="admin@example.com", role=UserRole.ADMIN)
    business = await seed_business(session, owner, "Short Lived")
    await session.commit()

    denied = await client.delete(DETAIL_URL.format(business.id), headers=auth_headers(owner.id))
    assert denied.status_code == 403
    assert denied.json()["error"]["message"] == "Only administrators can delete businesses"

    resp = await client.delete(DETAIL_URL.format(business.id), headers=auth_headers(admin.id, role=UserRole.ADMIN))
    assert resp.status_code == 200
    assert resp.json()["data"] == {"businessId": str(business.id), "message": "Business deleted successfully"}

    row = await fresh(Business, business.id)
    assert row.status == "deleted"
    assert row.deleted_at is not None

    assert (await client.get(DETAIL_URL.format(business.id))).status_code == 404
    again = await client.delete(DETAIL_URL.format(business.id), headers=auth_headers(admin.id, role=UserRole.ADMIN))
    assert again.status_code == 404


@pytest.mark.asyncio
async def test_mutations_invalidate_cached_reads(client, session):
    owner = await seed_user(session)
    business = await seed_business(session, owner, "Before Rename")
    await session.commit()

    await client.get(LIST_URL)
    await client.put(DETAIL_URL.format(business.id), json={"name": "After Rename"}, headers=auth_headers(owner.id))

    resp = (await client.get(LIST_URL)).json()
    assert resp["meta"]["performance"]["cacheHit"] is False
    assert [b["name"] for b in resp["data"]["businesses"]] == ["After Rename"]
