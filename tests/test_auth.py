import uuid
from datetime import datetime, timedelta, timezone

from jose import jwt

from storefront.backend.config import settings


def token_for(subject, expires_in=timedelta(hours=1), secret=None, **claims):
    payload = {
        "sub": str(subject),
        "aud": "authenticated",
        "exp": datetime.now(timezone.utc) + expires_in,
        **claims,
    }
    return jwt.encode(payload, secret or settings.AUTH_JWT_SECRET, algorithm=settings.AUTH_JWT_ALGORITHM)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestAdminBoundary:
    async def test_missing_header(self, anonymous_client):
        response = await anonymous_client.get("/api/promotions")

        assert response.status_code == 401
        assert response.json() == {"error": "Authorization header missing or invalid format"}

    async def test_non_bearer_header(self, anonymous_client):
        response = await anonymous_client.get("/api/promotions", headers={"Authorization": "Basic abc"})
        assert response.status_code == 401

    async def test_token_signed_with_other_secret(self, anonymous_client, admin):
        response = await anonymous_client.get(
            "/api/promotions", headers=bearer(token_for(admin.id, secret="someone-else"))
        )
        assert response.status_code == 401
        assert response.json()["error"].startswith("Invalid token")

    async def test_expired_token(self, anonymous_client, admin):
        response = await anonymous_client.get(
            "/api/promotions", headers=bearer(token_for(admin.id, expires_in=timedelta(minutes=-5)))
        )
        assert response.status_code == 401
        assert response.json() == {"error": "Token has expired"}

    async def test_unknown_profile(self, anonymous_client):
        response = await anonymous_client.get("/api/promotions", headers=bearer(token_for(uuid.uuid4())))
        assert response.status_code == 401
        assert response.json() == {"error": "Profile not found"}

    async def test_customer_is_forbidden(self, anonymous_client, customer):
        response = await anonymous_client.get("/api/promotions", headers=bearer(token_for(customer.id)))

        assert response.status_code == 403
        assert response.json() == {"error": "Admin access required"}

    async def test_admin_passes(self, anonymous_client, admin, brands):
        headers = bearer(token_for(admin.id))

        created = await anonymous_client.post("/api/promotions", headers=headers, json={
            "code": "ADMINMADE", "description": "x", "brand_id": str(brands[0].id),
        })
        listed = await anonymous_client.get("/api/promotions", headers=headers)

        assert created.status_code == 201
        assert created.json()["promotion"]["created_by"] == str(admin.id)
        assert listed.status_code == 200

    async def test_every_admin_route_is_guarded(self, anonymous_client):
        some_id = uuid.uuid4()
        calls = [
            ("post", "/api/promotions", {}),
            ("get", f"/api/promotions/{some_id}", None),
            ("put", f"/api/promotions/{some_id}", {}),
            ("delete", f"/api/promotions/{some_id}", None),
            ("patch", f"/api/promotions/{some_id}/toggle", None),
            ("patch", f"/api/promotions/{some_id}/extend", {"days": 1}),
            ("post", f"/api/promotions/{some_id}/duplicate", {}),
            ("post", "/api/promotions/bulk-create", {}),
            ("post", "/api/promotions/bulk-extend", {}),
            ("get", "/api/promotions/expiring", None),
            ("get", "/api/promotions/analytics", None),
        ]
        for method, url, payload in calls:
            kwargs = {"json": payload} if payload is not None else {}
            response = await anonymous_client.request(method.upper(), url, **kwargs)
            assert response.status_code == 401, (method, url)
