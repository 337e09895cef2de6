'''
Small request helpers shared by the API tests. Data is always seeded
through the API so that every request runs on the app's own sessions.
'''
from fastapi.testclient import TestClient

from tests.constants import TEST_HEADERS


def enroll_student(client: TestClient, first_name: str = "Анна", headers: dict = TEST_HEADERS) -> dict:
    response = client.post("/students/", json={"first_name": first_name, "last_name": "Тестова"}, headers=headers)
    assert response.status_code == 201, response.json()
    return response.json()


def credit(client: TestClient, student_id: str, amount: str, hours: str = "0") -> dict:
    response = client.post(
        f"/students/{student_id}/transactions",
        json={"amount": amount, "academic_hours": hours, "transaction_type": "credit", "description": "Пополнение"},
        headers=TEST_HEADERS
    )
    assert response.status_code == 201, response.json()
    return response.json()


def issue_charge(client: TestClient, student_id: str, learning_unit_id: str, amount: str = "3000", hours: str = "1.5", **extra) -> dict:
    body = {
        "student_id": student_id,
        "learning_unit_type": "individual",
        "learning_unit_id": learning_unit_id,
        "amount": amount,
        "academic_hours": hours,
        "description": "Индивидуальное занятие",
        **extra
    }
    response = client.post("/tuition-charges/", json=body, headers=TEST_HEADERS)
    assert response.status_code == 201, response.json()
    return response.json()
