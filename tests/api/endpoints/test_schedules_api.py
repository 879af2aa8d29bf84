# tests/api/endpoints/test_schedules_api.py
import pytest

from app.core.config import settings

API = settings.API_V1_STR
NOW = "2024-01-10T00:00:00Z"


@pytest.fixture
def group_id(client):
    return client.post(f"{API}/groups/", json={"name": "Family"}).json()["id"]


@pytest.fixture
def schedule(client, group_id):
    response = client.post(
        f"{API}/groups/{group_id}/schedules",
        json={
            "type": "recurring",
            "start_date": "2024-01-01",
            "start_time": "09:00",
            "timezone": "UTC",
            "frequency": {"type": "weekly", "days_of_week": [1]},
            "message": "Call {{groupName}}",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_get_schedule(client, schedule):
    response = client.get(f"{API}/schedules/{schedule['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["frequency"]["days_of_week"] == [1]
    assert data["overrides"] == []


def test_get_missing_schedule(client):
    response = client.get(f"{API}/schedules/missing")

    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "DOMAIN_001"


def test_create_rejects_end_before_start(client, group_id):
    response = client.post(
        f"{API}/groups/{group_id}/schedules",
        json={
            "type": "recurring",
            "start_date": "2024-02-01",
            "end_date": "2024-01-01",
            "frequency": {"type": "daily"},
        },
    )

    assert response.status_code == 422
    assert "End date must be on or after the start date" in response.json()["detail"]["message"]


def test_create_rejects_out_of_range_weekday(client, group_id):
    response = client.post(
        f"{API}/groups/{group_id}/schedules",
        json={
            "type": "recurring",
            "start_date": "2024-01-01",
            "frequency": {"type": "weekly", "days_of_week": [7]},
        },
    )

    assert response.status_code == 422


def test_update_schedule(client, schedule):
    response = client.patch(
        f"{API}/schedules/{schedule['id']}", json={"start_time": "07:45", "name": "Morning"}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["start_time"] == "07:45"
    assert data["name"] == "Morning"
    assert data["frequency"]["type"] == "weekly"


def test_update_schedule_with_invalid_time(client, schedule):
    response = client.patch(f"{API}/schedules/{schedule['id']}", json={"start_time": "7:45"})

    assert response.status_code == 422


def test_delete_schedule(client, schedule):
    assert client.delete(f"{API}/schedules/{schedule['id']}").status_code == 204
    assert client.get(f"{API}/schedules/{schedule['id']}").status_code == 404


def test_schedule_occurrences(client, schedule):
    response = client.get(
        f"{API}/schedules/{schedule['id']}/occurrences", params={"count": 3, "now": NOW}
    )

    assert response.status_code == 200
    data = response.json()
    assert [o["local_date"] for o in data] == ["2024-01-15", "2024-01-22", "2024-01-29"]
    assert all(o["local_time"] == "09:00" for o in data)
    assert data[0]["group_name"] == "Family"
    assert data[0]["message"] == "Call {{groupName}}"


def test_preview_unsaved_schedule(client):
    response = client.post(
        f"{API}/schedules/preview",
        params={"count": 2, "now": NOW, "owner_timezone": "Asia/Tokyo"},
        json={
            "type": "recurring",
            "start_date": "2024-01-01",
            "start_time": "09:00",
            "frequency": {"type": "monthly", "days_of_month": [31]},
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert [o["local_date"] for o in data] == ["2024-01-31", "2024-03-31"]
    assert data[0]["timezone"] == "Asia/Tokyo"


def test_preview_of_degenerate_definition_is_empty(client):
    response = client.post(
        f"{API}/schedules/preview",
        params={"now": NOW},
        json={"type": "recurring", "start_date": "2024-01-01", "frequency": {"type": "weekly"}},
    )

    assert response.status_code == 200
    assert response.json() == []


def test_edit_this_occurrence(client, schedule):
    response = client.post(
        f"{API}/schedules/{schedule['id']}/occurrences/edit",
        json={
            "occurrence_date": "2024-01-15",
            "new_date": "2024-01-16",
            "new_time": "10:30",
            "message": "Moved",
            "now": NOW,
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["scope"] == "this"
    assert data["schedule"]["overrides"][0]["original_date"] == "2024-01-15"
    occurrences = client.get(
        f"{API}/schedules/{schedule['id']}/occurrences", params={"count": 2, "now": NOW}
    ).json()
    assert [(o["local_date"], o["local_time"], o["message"]) for o in occurrences] == [
        ("2024-01-16", "10:30", "Moved"),
        ("2024-01-22", "09:00", "Call {{groupName}}"),
    ]


def test_edit_following_occurrences(client, schedule):
    response = client.post(
        f"{API}/schedules/{schedule['id']}/occurrences/edit",
        json={
            "occurrence_date": "2024-01-22",
            "new_date": "2024-01-24",
            "new_time": "09:00",
            "scope": "following",
            "now": NOW,
        },
    )

    assert response.status_code == 200, response.text
    data = response.json()
    assert data["schedule"]["end_date"] == "2024-01-21"
    assert data["new_schedule"]["start_date"] == "2024-01-24"
    assert data["new_schedule"]["frequency"]["days_of_week"] == [3]


def test_edit_past_occurrence_is_rejected(client, schedule):
    response = client.post(
        f"{API}/schedules/{schedule['id']}/occurrences/edit",
        json={
            "occurrence_date": "2024-01-08",
            "new_date": "2024-01-16",
            "new_time": "09:00",
            "now": NOW,
        },
    )

    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "BUSINESS_001"
