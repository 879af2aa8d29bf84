# tests/api/endpoints/test_groups.py
from app.core.config import settings

API = settings.API_V1_STR

WEEKLY_SCHEDULE = {
    "type": "recurring",
    "name": "Weekly call",
    "start_date": "2024-01-01",
    "start_time": "09:00",
    "timezone": "UTC",
    "frequency": {"type": "weekly", "days_of_week": [1]},
}


def create_group(client, **kwargs):
    payload = {"name": "Family"}
    payload.update(kwargs)
    response = client.post(f"{API}/groups/", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_create_and_get_group(client):
    group = create_group(client, owner_timezone="Europe/Berlin", default_message="Hi {{groupName}}")

    response = client.get(f"{API}/groups/{group['id']}")

    assert response.status_code == 200
    data = response.json()
    assert data["name"] == "Family"
    assert data["owner_timezone"] == "Europe/Berlin"
    assert data["enabled"] is True


def test_create_group_with_unknown_timezone(client):
    response = client.post(f"{API}/groups/", json={"name": "Family", "owner_timezone": "Mars/Base"})

    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "CALENDAR_002"


def test_create_group_requires_name(client):
    response = client.post(f"{API}/groups/", json={"name": ""})

    assert response.status_code == 422


def test_list_groups_filtered_by_enabled(client):
    create_group(client, name="Active")
    create_group(client, name="Paused", enabled=False)

    all_groups = client.get(f"{API}/groups/").json()
    enabled = client.get(f"{API}/groups/", params={"enabled": "true"}).json()

    assert [g["name"] for g in all_groups] == ["Active", "Paused"]
    assert [g["name"] for g in enabled] == ["Active"]


def test_update_group(client):
    group = create_group(client)

    response = client.patch(f"{API}/groups/{group['id']}", json={"enabled": False})

    assert response.status_code == 200
    assert response.json()["enabled"] is False
    assert response.json()["name"] == "Family"


def test_missing_group(client):
    assert client.get(f"{API}/groups/missing").status_code == 404
    response = client.patch(f"{API}/groups/missing", json={"name": "x"})
    assert response.status_code == 404
    assert response.json()["detail"]["details"]["entity_type"] == "Group"


def test_group_schedules(client):
    group = create_group(client)

    created = client.post(f"{API}/groups/{group['id']}/schedules", json=WEEKLY_SCHEDULE)
    listed = client.get(f"{API}/groups/{group['id']}/schedules")

    assert created.status_code == 201, created.text
    assert created.json()["summary"] == "Every week on Mon at 9:00 AM"
    assert [s["id"] for s in listed.json()] == [created.json()["id"]]


def test_schedule_for_missing_group(client):
    response = client.post(f"{API}/groups/missing/schedules", json=WEEKLY_SCHEDULE)

    assert response.status_code == 404


def test_delete_group_removes_schedules(client):
    group = create_group(client)
    schedule = client.post(f"{API}/groups/{group['id']}/schedules", json=WEEKLY_SCHEDULE).json()

    response = client.delete(f"{API}/groups/{group['id']}")

    assert response.status_code == 204
    assert client.get(f"{API}/groups/{group['id']}").status_code == 404
    assert client.get(f"{API}/schedules/{schedule['id']}").status_code == 404
