"""
Tests for the catalog, expedition, public tracking and health endpoints
"""
from decimal import Decimal

import pytest
from httpx import AsyncClient

from parcelhub.db.models.price import Price, PriceCategory
from parcelhub.db.models.user import User
from tests.helpers import auth_headers, build_shipment_payload

TIERED_PRICE = {
    "destination": "Hong Kong",
    "category": "battery",
    "use_tiered_pricing": True,
    "tiers": [
        {
            "min_weight": "0",
            "max_weight": "1",
            "price_per_kg": "210000",
            "price_per_volume": "42000",
            "price_per_kg_mitra": "189000",
            "price_per_volume_mitra": "37800",
        },
        {
            "min_weight": "1",
            "max_weight": None,
            "price_per_kg": "160000",
            "price_per_volume": "32000",
            "price_per_kg_mitra": "144000",
            "price_per_volume_mitra": "28800",
        },
    ],
}


class TestPriceAPI:

    @pytest.mark.integration
    async def test_list_is_public(self, test_client: AsyncClient, price_factory):
        await price_factory(destination="Malaysia", category=PriceCategory.NORMAL)
        await price_factory(destination="Malaysia", category=PriceCategory.BATTERY)
        await price_factory(destination="Taiwan")

        response = await test_client.get("/api/prices", params={"destination": "Malaysia"})

        assert response.status_code == 200
        prices = response.json()["data"]
        assert {p["category"] for p in prices} == {"normal", "battery"}

    @pytest.mark.integration
    async def test_staff_creates_tiered_price(self, test_client: AsyncClient, admin: User):
        response = await test_client.post("/api/prices", json=TIERED_PRICE, headers=auth_headers(admin))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["use_tiered_pricing"] is True
        assert [Decimal(t["min_weight"]) for t in data["tiers"]] == [Decimal("0"), Decimal("1")]
        assert data["tiers"][1]["max_weight"] is None

    @pytest.mark.integration
    async def test_duplicate_price_conflicts(
        self, test_client: AsyncClient, admin: User, flat_price: Price
    ):
        response = await test_client.post(
            "/api/prices",
            json={"destination": "Malaysia", "category": "normal", "price_per_kg": "1"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 409

    @pytest.mark.integration
    async def test_customer_cannot_create_price(self, test_client: AsyncClient, customer: User):
        response = await test_client.post("/api/prices", json=TIERED_PRICE, headers=auth_headers(customer))

        assert response.status_code == 403

    @pytest.mark.integration
    async def test_staff_updates_price(
        self, test_client: AsyncClient, admin: User, flat_price: Price
    ):
        response = await test_client.put(
            f"/api/prices/{flat_price.id}",
            json={"price_per_kg": "30000", "is_identity_required": True},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        data = response.json()["data"]
        assert Decimal(data["price_per_kg"]) == Decimal("30000")
        assert Decimal(data["price_per_volume"]) == Decimal("5000")
        assert data["is_identity_required"] is True

    @pytest.mark.integration
    async def test_quote_uses_caller_audience(
        self,
        test_client: AsyncClient,
        customer: User,
        mitra: User,
        flat_price: Price,
    ):
        body = {
            "destination": "Malaysia",
            "category": "normal",
            "weight": "2",
            "length": "20",
            "width": "20",
            "height": "20",
        }

        retail = await test_client.post("/api/prices/quote", json=body, headers=auth_headers(customer))
        partner = await test_client.post("/api/prices/quote", json=body, headers=auth_headers(mitra))

        assert retail.status_code == 200
        assert retail.json()["data"]["audience"] == "retail"
        assert Decimal(retail.json()["data"]["total_price"]) == Decimal("50000")
        assert Decimal(retail.json()["data"]["volumetric_weight"]) == Decimal("1.6")
        assert partner.json()["data"]["audience"] == "partner"
        assert Decimal(partner.json()["data"]["total_price"]) == Decimal("45000")

    @pytest.mark.integration
    async def test_quote_requires_token(self, test_client: AsyncClient, flat_price: Price):
        response = await test_client.post(
            "/api/prices/quote",
            json={"destination": "Malaysia", "category": "normal", "weight": "1",
                  "length": "1", "width": "1", "height": "1"},
        )

        assert response.status_code == 401

    @pytest.mark.integration
    async def test_quote_zero_dimension(
        self, test_client: AsyncClient, customer: User, flat_price: Price
    ):
        response = await test_client.post(
            "/api/prices/quote",
            json={"destination": "Malaysia", "category": "normal", "weight": "1",
                  "length": "0", "width": "10", "height": "10"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "length"


class TestExpeditionAPI:

    @pytest.mark.integration
    async def test_create_and_list(self, test_client: AsyncClient, admin: User):
        created = await test_client.post(
            "/api/expeditions",
            json={"name": "J&T Express", "code": "jnt"},
            headers=auth_headers(admin),
        )
        listed = await test_client.get("/api/expeditions")

        assert created.status_code == 201
        assert created.json()["data"]["code"] == "JNT"
        assert [e["code"] for e in listed.json()["data"]] == ["JNT"]

    @pytest.mark.integration
    async def test_blank_name_rejected(self, test_client: AsyncClient, admin: User):
        response = await test_client.post(
            "/api/expeditions", json={"name": "  ", "code": "X"}, headers=auth_headers(admin)
        )

        assert response.status_code == 422

    @pytest.mark.integration
    async def test_customer_cannot_register(self, test_client: AsyncClient, customer: User):
        response = await test_client.post(
            "/api/expeditions", json={"name": "J&T Express", "code": "JNT"}, headers=auth_headers(customer)
        )

        assert response.status_code == 403

    @pytest.mark.integration
    async def test_update_and_retire(self, test_client: AsyncClient, admin: User, expedition_factory):
        jne = await expedition_factory()
        expedition_id = jne.id
        headers = auth_headers(admin)

        updated = await test_client.put(
            f"/api/expeditions/{expedition_id}", json={"name": "JNE Express Intl"}, headers=headers
        )
        assert updated.status_code == 200
        assert updated.json()["data"]["name"] == "JNE Express Intl"
        assert updated.json()["data"]["code"] == "JNE"

        retired = await test_client.delete(f"/api/expeditions/{expedition_id}", headers=headers)
        assert retired.status_code == 200
        assert retired.json()["data"]["is_active"] is False

        public = await test_client.get("/api/expeditions")
        everything = await test_client.get("/api/expeditions/all", headers=headers)
        assert public.json()["data"] == []
        assert [(e["code"], e["is_active"]) for e in everything.json()["data"]] == [("JNE", False)]

    @pytest.mark.integration
    async def test_staff_only_management(self, test_client: AsyncClient, customer: User, expedition_factory):
        jne = await expedition_factory()
        headers = auth_headers(customer)

        listing = await test_client.get("/api/expeditions/all", headers=headers)
        update = await test_client.put(f"/api/expeditions/{jne.id}", json={"name": "X"}, headers=headers)
        retire = await test_client.delete(f"/api/expeditions/{jne.id}", headers=headers)

        assert [listing.status_code, update.status_code, retire.status_code] == [403, 403, 403]

    @pytest.mark.integration
    async def test_unknown_expedition(self, test_client: AsyncClient, admin: User):
        response = await test_client.delete("/api/expeditions/404", headers=auth_headers(admin))

        assert response.status_code == 404

    @pytest.mark.integration
    async def test_retired_expedition_refused_at_assignment(
        self, test_client: AsyncClient, customer: User, admin: User, flat_price: Price, expedition_factory
    ):
        jne = await expedition_factory()
        expedition_id = jne.id
        staff_headers = auth_headers(admin)
        created = await test_client.post(
            "/api/shipments", json=build_shipment_payload(), headers=auth_headers(customer)
        )
        shipment_id = created.json()["data"]["shipment_id"]
        await test_client.delete(f"/api/expeditions/{expedition_id}", headers=staff_headers)

        response = await test_client.put(
            f"/api/shipments/{shipment_id}/expedition",
            json={"expedition_id": expedition_id, "expedition_tracking_code": "JNE0001"},
            headers=staff_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"]["details"]["field"] == "expedition_id"


class TestPublicTrackingAPI:

    @pytest.mark.integration
    async def test_track_without_token(
        self, test_client: AsyncClient, customer: User, flat_price: Price
    ):
        created = await test_client.post(
            "/api/shipments", json=build_shipment_payload(), headers=auth_headers(customer)
        )
        code = created.json()["data"]["tracking_code"]

        response = await test_client.get(f"/api/tracking/{code.lower()}")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["tracking_code"] == code
        assert data["status"] == "pending"
        assert data["receiver_name"] == "Siti Aminah"
        assert [h["status"] for h in data["history"]] == ["pending"]
        assert "sender_phone" not in data

    @pytest.mark.integration
    async def test_unknown_code(self, test_client: AsyncClient):
        response = await test_client.get("/api/tracking/BE00000000000")

        assert response.status_code == 404


@pytest.mark.integration
async def test_health(test_client: AsyncClient):
    response = await test_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}
