"""
系统设置API测试
"""
from conftest import add_user, login


def test_operation_hours_default_and_update(client, admin_headers):
    assert client.get("/api/settings/operation-hours").json() == {"start": "06:00", "end": "21:00"}
    response = client.put("/api/settings/operation-hours", json={"start": "7:30", "end": "18:00"},
                          headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/api/settings/operation-hours").json() == {"start": "07:30", "end": "18:00"}
    grid = client.get("/api/bookings/grid", params={"day": "2025-03-10"}).json()
    assert grid["rows"][0]["time"] == "07:30"
    assert len(grid["rows"]) == 21


def test_invalid_operation_hours_are_rejected(client, admin_headers):
    response = client.put("/api/settings/operation-hours", json={"start": "7am", "end": "18:00"},
                          headers=admin_headers)
    assert response.status_code == 422


def test_settings_changes_require_settings_flag(client, db):
    add_user(db, "staff@example.com")
    headers = login(client, "staff@example.com")
    response = client.put("/api/settings/operation-hours", json={"start": "07:00", "end": "18:00"}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "You don't have permission to perform this action."
    assert client.put("/api/settings/testing-clock", json={"enabled": True}).status_code == 401


def test_testing_clock_round_trip(client, admin_headers):
    assert client.get("/api/settings/testing-clock").json() == {"enabled": False, "date": None, "time": None}
    payload = {"enabled": True, "date": "2025-01-02", "time": "08:30"}
    assert client.put("/api/settings/testing-clock", json=payload, headers=admin_headers).status_code == 200
    assert client.get("/api/settings/testing-clock").json() == payload
    assert client.put("/api/settings/testing-clock", json={"enabled": True, "date": "02/01/2025"},
                      headers=admin_headers).status_code == 422
    keys = [s["key"] for s in client.get("/api/settings").json()]
    assert keys == ["testing_clock"]


def test_now_uses_injected_clock(client):
    data = client.get("/api/settings/now").json()
    assert data["date"] == "2025-03-10"
    assert data["time"] == "10:00"
    assert data["simulated"] is False
