from contextlib import ExitStack

import pytest
from starlette.websockets import WebSocketDisconnect

from jobtracker.token import create_access_token


def _connect(client, user=None):
    url = "/ws"
    if user is not None:
        url += f"?token={create_access_token(user.email)}"
    return client.websocket_connect(url)


def _join(ws, job_id):
    ws.send_json({"action": "join_job", "job_id": job_id})
    ack = ws.receive_json()
    assert ack == {"type": "Subscribed", "payload": {"channel": f"job:{job_id}"}}


def _assert_idle(ws):
    # notifications are sent before the HTTP call returns, so a pong proves nothing else is queued
    ws.send_json({"action": "ping"})
    assert ws.receive_json()["type"] == "Pong"


def test_connect_subscribes_to_default_channels(client, seeker):
    with _connect(client, seeker) as ws:
        hello = ws.receive_json()
        assert hello["type"] == "Connected"
        assert hello["payload"]["user_id"] == seeker.id
        assert hello["payload"]["channels"] == ["broadcast", f"user:{seeker.id}"]
        assert client.app.state.registry.connection_count() == 1

    assert client.app.state.registry.connection_count() == 0


def test_anonymous_connection_gets_broadcast_only(client):
    with _connect(client) as ws:
        hello = ws.receive_json()
        assert hello["payload"]["user_id"] is None
        assert hello["payload"]["channels"] == ["broadcast"]


def test_invalid_token_is_refused(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/ws?token=not-a-token") as ws:
            ws.receive_json()
    assert exc.value.code == 1008


def test_status_change_fans_out_to_owner_and_job_watchers_only(
    client, seeker, other_seeker, recruiter, job, auth_headers
):
    with _connect(client, seeker) as owner, _connect(client, recruiter) as watcher, \
            _connect(client, other_seeker) as bystander:
        for ws in (owner, watcher, bystander):
            assert ws.receive_json()["type"] == "Connected"
        _join(watcher, job.id)

        r = client.post("/api/applications", json={"job_id": job.id}, headers=auth_headers(seeker))
        assert r.status_code == 201
        app_id = r.json()["id"]

        created = watcher.receive_json()
        assert created["type"] == "ApplicationCreated"
        assert created["payload"]["application_id"] == app_id
        assert created["payload"]["message"].startswith("New application received for Backend Engineer")

        r = client.put(f"/api/applications/{app_id}", json={"status": "Interview"}, headers=auth_headers(recruiter))
        assert r.status_code == 200

        for ws in (owner, watcher):
            msg = ws.receive_json()
            assert msg["type"] == "ApplicationStatusChanged"
            assert msg["payload"]["status"] == "Interview"
            assert msg["payload"]["previous_status"] == "Submitted"
            assert msg["payload"]["job_id"] == job.id

        _assert_idle(bystander)
        _assert_idle(owner)


def test_no_op_status_update_sends_nothing(client, seeker, recruiter, job, auth_headers):
    r = client.post("/api/applications", json={"job_id": job.id}, headers=auth_headers(seeker))
    app_id = r.json()["id"]

    with _connect(client, seeker) as owner:
        owner.receive_json()
        r = client.post(f"/api/applications/{app_id}/status", json={"status": "Submitted"},
                        headers=auth_headers(recruiter))
        assert r.status_code == 200
        _assert_idle(owner)


def test_job_events_reach_broadcast_and_job_channels(client, seeker, recruiter, admin, auth_headers):
    with _connect(client, seeker) as ws, _connect(client) as anonymous:
        ws.receive_json()
        anonymous.receive_json()

        r = client.post("/api/jobs", json={"title": "SRE", "company": "Acme"}, headers=auth_headers(recruiter))
        job_id = r.json()["id"]
        for sock in (ws, anonymous):
            msg = sock.receive_json()
            assert msg["type"] == "JobCreated"
            assert msg["payload"]["message"] == "New job posted: SRE at Acme"

        _join(ws, job_id)
        client.post(f"/api/jobs/{job_id}/status", json={"status": "OnHold"}, headers=auth_headers(recruiter))
        # once via broadcast, once via the job channel
        assert [ws.receive_json()["type"] for _ in range(2)] == ["JobUpdated", "JobUpdated"]
        assert anonymous.receive_json()["payload"]["status"] == "OnHold"

        client.delete(f"/api/jobs/{job_id}", headers=auth_headers(admin))
        deleted = anonymous.receive_json()
        assert deleted["type"] == "JobDeleted"
        assert deleted["payload"]["message"] == f"Job with ID {job_id} has been deleted"


def test_leave_job_stops_job_notifications(client, seeker, other_seeker, job, auth_headers):
    with _connect(client, other_seeker) as ws:
        ws.receive_json()
        _join(ws, job.id)
        ws.send_json({"action": "leave_job", "job_id": job.id})
        assert ws.receive_json() == {"type": "Unsubscribed", "payload": {"channel": f"job:{job.id}"}}

        client.post("/api/applications", json={"job_id": job.id}, headers=auth_headers(seeker))
        _assert_idle(ws)


def test_admin_notifications(client, seeker, other_seeker, admin, auth_headers):
    with _connect(client, seeker) as ws, _connect(client, other_seeker) as other:
        ws.receive_json()
        other.receive_json()

        r = client.post(f"/api/notifications/users/{seeker.id}", json={"message": "Hello you"},
                        headers=auth_headers(admin))
        assert r.status_code == 202
        note = ws.receive_json()
        assert note["type"] == "UserNotification"
        assert note["payload"]["message"] == "Hello you"
        _assert_idle(other)

        r = client.post("/api/notifications/broadcast", json={"message": "Hi all", "level": "warning"},
                        headers=auth_headers(admin))
        assert r.status_code == 202
        for sock in (ws, other):
            assert sock.receive_json()["payload"]["notification_type"] == "warning"

        r = client.post("/api/notifications/broadcast", json={"message": "nope"}, headers=auth_headers(seeker))
        assert r.status_code == 403


def test_client_errors_and_statistics(client, seeker, job):
    with _connect(client, seeker) as ws:
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json()["type"] == "Error"

        ws.send_json({"action": "join_job", "job_id": "abc"})
        assert ws.receive_json() == {"type": "Error", "payload": {"message": "job_id must be an integer"}}

        ws.send_json({"action": "dance"})
        assert ws.receive_json()["payload"]["message"] == "Unknown action: dance"

        ws.send_json({"action": "request_statistics"})
        stats = ws.receive_json()
        assert stats["type"] == "JobStatistics"
        assert stats["payload"]["total_jobs"] == 1
        assert stats["payload"]["jobs_by_status"]["Open"] == 1


def test_idle_sockets_do_not_hold_database_connections(client, db_session, test_engine, seeker, job):
    # more sockets than the default pool (5 + 10 overflow)
    with ExitStack() as stack:
        sockets = [stack.enter_context(_connect(client, seeker)) for _ in range(16)]
        for ws in sockets:
            assert ws.receive_json()["type"] == "Connected"
        sockets[0].send_json({"action": "request_statistics"})
        assert sockets[0].receive_json()["type"] == "JobStatistics"

        # release the fixture session's own connection
        db_session.commit()
        assert test_engine.pool.checkedout() == 0

        r = client.get("/health")
        assert r.status_code == 200
