# tests/api/endpoints/test_occurrences_api.py
from app.core.config import settings

API = settings.API_V1_STR
NOW = "2024-01-10T00:00:00Z"


def add_group(client, name, **kwargs):
    return client.post(f"{API}/groups/", json={"name": name, **kwargs}).json()["id"]


def add_schedule(client, group_id, **kwargs):
    payload = {
        "type": "recurring",
        "start_date": "2024-01-01",
        "start_time": "09:00",
        "timezone": "UTC",
        "frequency": {"type": "daily"},
    }
    payload.update(kwargs)
    response = client.post(f"{API}/groups/{group_id}/schedules", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def test_upcoming_merges_groups_in_time_order(client):
    family = add_group(client, "Family")
    work = add_group(client, "Work")
    add_schedule(client, family, start_time="18:00")
    add_schedule(client, work, start_time="08:00")

    response = client.get(f"{API}/occurrences/upcoming", params={"limit": 4, "now": NOW})

    assert response.status_code == 200
    data = response.json()
    assert [(o["group_name"], o["local_date"], o["local_time"]) for o in data] == [
        ("Work", "2024-01-10", "08:00"),
        ("Family", "2024-01-10", "18:00"),
        ("Work", "2024-01-11", "08:00"),
        ("Family", "2024-01-11", "18:00"),
    ]
    assert [o["label"] for o in data] == ["Today", "Today", "Tomorrow", "Tomorrow"]


def test_upcoming_skips_disabled_groups(client):
    paused = add_group(client, "Paused", enabled=False)
    add_schedule(client, paused)

    response = client.get(f"{API}/occurrences/upcoming", params={"now": NOW})

    assert response.status_code == 200
    assert response.json() == []


def test_upcoming_in_viewer_timezone(client):
    add_schedule(client, add_group(client, "Family"))

    response = client.get(
        f"{API}/occurrences/upcoming",
        params={"limit": 1, "now": NOW, "timezone": "America/New_York"},
    )

    [first] = response.json()
    assert first["local_date"] == "2024-01-10"
    assert first["local_time"] == "04:00"
    assert first["timezone"] == "America/New_York"


def test_upcoming_with_unknown_viewer_timezone(client):
    response = client.get(f"{API}/occurrences/upcoming", params={"timezone": "Nowhere/Land"})

    assert response.status_code == 422


def test_upcoming_limit_is_bounded(client):
    response = client.get(
        f"{API}/occurrences/upcoming", params={"limit": settings.UPCOMING_MAX_LIMIT + 1}
    )

    assert response.status_code == 422
