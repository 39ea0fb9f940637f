from datetime import datetime, timedelta, timezone
from uuid import uuid4

from sqlalchemy import select

from storefront.models import Promotion


async def test_valid_code(anonymous_client, brands, make_promotion):
    await make_promotion(brands[0], code="WELCOME", discount_percent=15, usage_limit=10, times_used=2)

    response = await anonymous_client.post("/api/promotions/validate", json={"code": " welcome "})

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert body["code"] == "WELCOME"
    assert body["reasons"] == []
    assert body["message"] == "Promotion code is valid! 15% discount available."
    assert body["promotion"]["computed_status"] == "active"
    assert body["promotion"]["usage_percentage"] == 20
    assert "error" not in body
    assert "user_usage_check" not in body


async def test_code_expired_yesterday(anonymous_client, brands, make_promotion):
    now = datetime.now(timezone.utc)
    valid_until = now - timedelta(days=1)
    await make_promotion(brands[0], code="GONE", valid_from=now - timedelta(days=10), valid_until=valid_until)

    response = await anonymous_client.post("/api/promotions/validate", json={"code": "GONE"})

    assert response.status_code == 400
    body = response.json()
    assert body["valid"] is False
    assert body["reasons"] == [f"Promotion expired on {valid_until.strftime('%Y-%m-%d')}"]
    assert body["promotion"] is None
    assert body["error"] == body["reasons"][0]


async def test_every_violation_is_reported(anonymous_client, brands, make_promotion):
    await make_promotion(brands[0], code="BROKEN", is_active=False, usage_limit=5, times_used=5)

    response = await anonymous_client.post("/api/promotions/validate", json={
        "code": "BROKEN", "brand_id": str(brands[1].id),
    })

    body = response.json()
    assert body["reasons"] == [
        "Promotion is not active",
        "Promotion usage limit reached",
        "Promotion not valid for this brand",
    ]
    assert body["error"] == ", ".join(body["reasons"])


async def test_scheduled_code(anonymous_client, brands, make_promotion):
    now = datetime.now(timezone.utc)
    starts = now + timedelta(days=2)
    await make_promotion(brands[0], code="SOON", valid_from=starts, valid_until=now + timedelta(days=9))

    body = (await anonymous_client.post("/api/promotions/validate", json={"code": "SOON"})).json()

    assert body["reasons"] == [f"Promotion starts on {starts.strftime('%Y-%m-%d')}"]


async def test_matching_brand_passes(anonymous_client, brands, make_promotion):
    await make_promotion(brands[0], code="BRANDED")

    response = await anonymous_client.post("/api/promotions/validate", json={
        "code": "BRANDED", "brand_id": str(brands[0].id),
    })

    assert response.json()["valid"] is True


async def test_unknown_code(anonymous_client, brands):
    response = await anonymous_client.post("/api/promotions/validate", json={"code": "nope"})

    assert response.status_code == 404
    assert response.json() == {"error": "Promotion code not found", "valid": False, "code": "NOPE"}


async def test_code_required(anonymous_client):
    for payload in ({}, {"code": "   "}):
        response = await anonymous_client.post("/api/promotions/validate", json=payload)
        assert response.status_code == 400
        assert response.json() == {"error": "Promotion code is required"}


async def test_user_usage_check_is_declared_stub(anonymous_client, brands, make_promotion):
    await make_promotion(brands[0], code="PERUSER")

    body = (await anonymous_client.post("/api/promotions/validate", json={
        "code": "PERUSER", "user_id": str(uuid4()),
    })).json()

    assert body["valid"] is True
    assert body["user_usage_check"] == "not_implemented"


async def test_validation_never_counts_usage(anonymous_client, brands, make_promotion, db_session):
    promo = await make_promotion(brands[0], code="COUNTME", usage_limit=3, times_used=1)

    for _ in range(3):
        await anonymous_client.post("/api/promotions/validate", json={"code": "COUNTME"})

    result = await db_session.execute(select(Promotion.times_used).where(Promotion.id == promo.id))
    assert result.scalar() == 1
