import pytest
from decimal import Decimal
from uuid import uuid4
from fastapi.testclient import TestClient

from tests.api.helpers import enroll_student
from tests.constants import TEST_HEADERS


def create_rule(client: TestClient, **fields) -> dict:
    body = {"name": "Семейная скидка", "type": "discount", "value_type": "percent", "value": "10", **fields}
    response = client.post("/discounts/", json=body, headers=TEST_HEADERS)
    assert response.status_code == 201, response.json()
    return response.json()


def assign(client: TestClient, student_id: str, rule_id: str, **fields) -> dict:
    response = client.post(
        f"/students/{student_id}/discounts",
        json={"discount_surcharge_id": rule_id, **fields},
        headers=TEST_HEADERS
    )
    assert response.status_code == 201, response.json()
    return response.json()


@pytest.mark.anyio
class TestDiscountsAPI:

    async def test_create_update_and_list(self, client: TestClient):
        rule = create_rule(client)
        assert Decimal(rule["value"]) == Decimal("10")
        assert rule["is_active"] is True

        response = client.patch(f"/discounts/{rule['id']}", json={"is_active": False}, headers=TEST_HEADERS)
        assert response.status_code == 200, response.json()
        assert response.json()["is_active"] is False

        assert client.get("/discounts/", headers=TEST_HEADERS).json() == []
        listed = client.get("/discounts/", params={"include_inactive": True}, headers=TEST_HEADERS).json()
        assert [r["id"] for r in listed] == [rule["id"]]

    async def test_update_unknown_rule(self, client: TestClient):
        response = client.patch(f"/discounts/{uuid4()}", json={"value": "5"}, headers=TEST_HEADERS)
        assert response.status_code == 404
        assert response.json()["error"] == "DiscountNotFound"


@pytest.mark.anyio
class TestPricingAPI:

    async def test_percent_discount(self, client: TestClient):
        print("\n--- Testing POST /pricing/calculate ---")
        student = enroll_student(client)
        rule = create_rule(client)
        assign(client, student["id"], rule["id"])

        response = client.post("/pricing/calculate", json={
            "base_price": "900", "student_id": student["id"]
        }, headers=TEST_HEADERS)

        assert response.status_code == 200, response.json()
        calculation = response.json()
        assert Decimal(calculation["final_price"]) == Decimal("810")
        assert Decimal(calculation["total_discount"]) == Decimal("90")
        assert len(calculation["calculations"]) == 1
        assert calculation["calculations"][0]["discount_id"] == rule["id"]

    async def test_priority_order(self, client: TestClient):
        student = enroll_student(client)
        fixed = create_rule(client, name="Доплата", type="surcharge", value_type="fixed", value="100", apply_priority=1)
        percent = create_rule(client, apply_priority=2)
        assign(client, student["id"], fixed["id"])
        assign(client, student["id"], percent["id"])

        calculation = client.post("/pricing/calculate", json={
            "base_price": "900", "student_id": student["id"]
        }, headers=TEST_HEADERS).json()

        # (900 + 100) - 10%
        assert Decimal(calculation["final_price"]) == Decimal("900")
        assert [step["discount_id"] for step in calculation["calculations"]] == [fixed["id"], percent["id"]]

    async def test_without_bindings(self, client: TestClient):
        student = enroll_student(client)
        calculation = client.post("/pricing/calculate", json={
            "base_price": "1200.00", "student_id": student["id"]
        }, headers=TEST_HEADERS).json()
        assert Decimal(calculation["final_price"]) == Decimal("1200")
        assert calculation["calculations"] == []

    async def test_negative_base_price(self, client: TestClient):
        student = enroll_student(client)
        response = client.post("/pricing/calculate", json={
            "base_price": "-1", "student_id": student["id"]
        }, headers=TEST_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidAmount"

    async def test_unassigned_discount_stops_applying(self, client: TestClient):
        student = enroll_student(client)
        rule = create_rule(client)
        binding = assign(client, student["id"], rule["id"], notes="до конца семестра")

        bindings = client.get(f"/students/{student['id']}/discounts", headers=TEST_HEADERS).json()
        assert [b["id"] for b in bindings] == [binding["id"]]
        assert bindings[0]["discount_surcharge"]["name"] == "Семейная скидка"

        response = client.delete(f"/student-discounts/{binding['id']}", headers=TEST_HEADERS)
        assert response.status_code == 200

        calculation = client.post("/pricing/calculate", json={
            "base_price": "900", "student_id": student["id"]
        }, headers=TEST_HEADERS).json()
        assert Decimal(calculation["final_price"]) == Decimal("900")
        assert client.get(f"/students/{student['id']}/discounts", headers=TEST_HEADERS).json() == []
