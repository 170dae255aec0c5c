from conftest import AUTH, VALID_CONTEXT, use_settings

SESSIONS = "/api/business-planner/sessions"


def _create(client, title=None, headers=AUTH):
    body = {"context": VALID_CONTEXT}
    if title is not None:
        body["title"] = title
    return client.post(SESSIONS, json=body, headers=headers)


def test_health(app_client):
    body = app_client.get("/health").json()
    assert body == {"ok": True, "db_initialized": True, "openai_available": True}


def test_create_session_uses_default_title(app_client):
    response = _create(app_client)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "New planning session created"
    session = body["session"]
    assert session["title"] == "Business Planning Session"
    assert session["status"] == "active"
    assert session["user_id"] == "user-1"
    assert session["context"]["business_type"] == "SaaS"


def test_create_session_requires_auth(app_client):
    response = _create(app_client, headers={})
    assert response.status_code == 401
    assert response.json()["code"] == "BP_UNAUTHORIZED"


def test_create_session_rejects_blank_context_fields(app_client):
    response = app_client.post(
        SESSIONS,
        json={"context": {"business_type": "  ", "target_market": "SMBs", "challenge": ""}},
        headers=AUTH,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "BP_INVALID_INPUT"
    assert body["details"]["errors"] == ["Business type is required.", "Business challenge is required."]


def test_create_session_without_context(app_client):
    response = app_client.post(SESSIONS, json={"title": "Plan"}, headers=AUTH)
    assert response.status_code == 400
    assert response.json()["message"] == "Session context is required"


def test_active_session_limit(app_client, planner_app):
    use_settings(planner_app, max_active_sessions=2)
    assert _create(app_client).status_code == 201
    assert _create(app_client).status_code == 201

    response = _create(app_client)

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "BP_SESSION_LIMIT_EXCEEDED"
    assert body["message"] == "Maximum 2 active sessions allowed per user"


def test_archived_sessions_free_an_active_slot(app_client, planner_app):
    use_settings(planner_app, max_active_sessions=1)
    first = _create(app_client).json()["session"]
    app_client.delete(f"{SESSIONS}/{first['id']}", headers=AUTH)
    assert _create(app_client).status_code == 201


def test_total_session_limit(app_client, planner_app):
    use_settings(planner_app, max_total_sessions=1)
    first = _create(app_client).json()["session"]
    app_client.delete(f"{SESSIONS}/{first['id']}", headers=AUTH)

    response = _create(app_client)

    assert response.status_code == 409
    assert response.json()["message"] == "Maximum 1 sessions allowed per user"


def test_list_sessions_paginates(app_client):
    for title in ("One", "Two", "Three"):
        _create(app_client, title=title)

    first = app_client.get(SESSIONS, params={"page": 1, "limit": 2}, headers=AUTH).json()
    second = app_client.get(SESSIONS, params={"page": 2, "limit": 2}, headers=AUTH).json()

    assert first["count"] == 3
    assert first["total_pages"] == 2
    assert first["has_next"] and not first["has_prev"]
    assert len(first["data"]) == 2
    assert len(second["data"]) == 1
    assert second["has_prev"] and not second["has_next"]


def test_list_sessions_rejects_oversized_page(app_client):
    response = app_client.get(SESSIONS, params={"limit": 101}, headers=AUTH)
    assert response.status_code == 400


def test_sessions_are_scoped_to_caller(app_client):
    _create(app_client)
    body = app_client.get(SESSIONS, headers={"Authorization": "Bearer user-2"}).json()
    assert body["count"] == 0
    assert body["data"] == []


def test_update_session_title(app_client):
    session = _create(app_client).json()["session"]

    response = app_client.put(f"{SESSIONS}/{session['id']}", json={"title": "Churn plan"}, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Session updated successfully"
    assert body["session"]["title"] == "Churn plan"


def test_update_rejects_empty_title(app_client):
    session = _create(app_client).json()["session"]
    response = app_client.put(f"{SESSIONS}/{session['id']}", json={"title": "   "}, headers=AUTH)
    assert response.status_code == 400


def test_update_unknown_session(app_client):
    response = app_client.put(f"{SESSIONS}/missing", json={"title": "Churn plan"}, headers=AUTH)
    assert response.status_code == 404
    assert response.json()["message"] == "Session not found"


def test_archive_session(app_client):
    session = _create(app_client).json()["session"]

    response = app_client.delete(f"{SESSIONS}/{session['id']}", headers=AUTH)

    assert response.status_code == 200
    assert response.json()["message"] == "Session archived successfully"
    archived = app_client.get(SESSIONS, params={"status": "archived"}, headers=AUTH).json()
    assert [item["id"] for item in archived["data"]] == [session["id"]]


def test_archive_unknown_session(app_client):
    response = app_client.delete(f"{SESSIONS}/missing", headers=AUTH)
    assert response.status_code == 404


def test_messages_of_foreign_session_are_hidden(app_client):
    session = _create(app_client).json()["session"]
    response = app_client.get(f"{SESSIONS}/{session['id']}/messages", headers={"Authorization": "Bearer user-2"})
    assert response.status_code == 404
