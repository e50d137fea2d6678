from fastapi.testclient import TestClient

from conftest import EMPLOYER, SEEKER, SEEKER2, apply, create_job


def _accept_and_reject(client: TestClient) -> None:
    first = apply(client, create_job(client, title="First")["id"])
    second = apply(client, create_job(client, title="Second")["id"])
    client.put(f"/api/applications/{first['id']}", json={"status": "accepted"}, headers=EMPLOYER)
    client.put(f"/api/applications/{second['id']}", json={"status": "rejected"}, headers=EMPLOYER)


def test_notifications_are_listed_newest_first(client: TestClient) -> None:
    _accept_and_reject(client)

    body = client.get("/api/notifications", headers=SEEKER).json()
    assert [row["metadata"]["jobTitle"] for row in body] == ["Second", "First"]
    assert all(row["userId"] == "seeker-1" for row in body)
    assert client.get("/api/notifications", headers=SEEKER2).json() == []


def test_mark_read_and_unread_count(client: TestClient) -> None:
    _accept_and_reject(client)
    assert client.get("/api/notifications/unread-count", headers=SEEKER).json() == {"unread": 2}

    newest = client.get("/api/notifications", headers=SEEKER).json()[0]
    response = client.patch(f"/api/notifications/{newest['id']}/read", headers=SEEKER)
    assert response.status_code == 200
    assert response.json()["read"] is True

    again = client.patch(f"/api/notifications/{newest['id']}/read", headers=SEEKER)
    assert again.status_code == 200

    assert client.get("/api/notifications/unread-count", headers=SEEKER).json() == {"unread": 1}
    unread = client.get("/api/notifications", params={"unread_only": True}, headers=SEEKER).json()
    assert [row["metadata"]["jobTitle"] for row in unread] == ["First"]


def test_only_recipient_can_mark_read(client: TestClient) -> None:
    _accept_and_reject(client)
    notification = client.get("/api/notifications", headers=SEEKER).json()[0]

    response = client.patch(f"/api/notifications/{notification['id']}/read", headers=SEEKER2)
    assert response.status_code == 403
    assert client.get("/api/notifications/unread-count", headers=SEEKER).json() == {"unread": 2}

    assert client.patch("/api/notifications/unknown/read", headers=SEEKER).status_code == 404


def test_mark_all_read(client: TestClient) -> None:
    _accept_and_reject(client)

    response = client.post("/api/notifications/read-all", headers=SEEKER)
    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert client.get("/api/notifications/unread-count", headers=SEEKER).json() == {"unread": 0}
    assert client.post("/api/notifications/read-all", headers=SEEKER).json() == {"updated": 0}
