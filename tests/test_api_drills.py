import asyncio

from caseprep.config import RATE_LIMITS


def start(client, headers, drill_id="calc-breakeven"):
    return client.post(f"/api/drills/{drill_id}/attempts", headers=headers)


def test_admin_seeding_requires_token(client):
    assert client.post("/api/admin/init-drills").status_code == 401
    response = client.post("/api/admin/init-drills", headers={"X-Admin-Token": "wrong"})
    assert response.status_code == 403


def test_list_and_filter_drills(client, seeded):
    drills = client.get("/api/drills").json()
    assert len(drills) == 8
    assert all("expected_answer" not in d for d in drills)

    calculations = client.get("/api/drills", params={"type": "CALCULATION"}).json()
    assert {d["id"] for d in calculations} == {"calc-margin", "calc-breakeven"}

    advanced = client.get("/api/drills", params={"difficulty": "ADVANCED", "industry": "Transportation"}).json()
    assert [d["id"] for d in advanced] == ["prompt-airline-entry"]


def test_invalid_filter_is_a_validation_error(client, seeded):
    response = client.get("/api/drills", params={"type": "ESSAY"})
    assert response.status_code == 400


def test_categories(client, seeded):
    categories = {c["type"]: c for c in client.get("/api/drills/categories").json()}
    assert categories["CASE_PROMPT"]["drill_count"] == 2
    assert categories["CALCULATION"]["time_limit"] == 15
    assert categories["SYNTHESIZING"]["name"] == "Synthesizing"


def test_get_drill_hides_answer(client, seeded):
    response = client.get("/api/drills/calc-margin")
    assert response.status_code == 200
    assert response.json()["title"] == "Operating Margin"
    assert "expected_answer" not in response.json()

    assert client.get("/api/drills/nope").status_code == 404


def test_numeric_drill_flow(client, seeded, user):
    headers, user_id = user

    attempt = start(client, headers).json()
    assert attempt["status"] == "IN_PROGRESS"
    assert attempt["user_id"] == user_id

    response = client.post(
        f"/api/drills/attempts/{attempt['id']}/submit",
        json={"response": "80,000 units"},
        headers=headers,
    )
    assert response.status_code == 200
    result = response.json()
    assert result["attempt"]["status"] == "EVALUATED"
    assert result["attempt"]["score"] == 100
    assert result["feedback"]["score"] == 100
    assert result["feedback"]["type"] == "drill"
    assert result["attempt"]["feedback_id"] == result["feedback"]["id"]

    again = client.post(
        f"/api/drills/attempts/{attempt['id']}/submit",
        json={"response": "1"},
        headers=headers,
    )
    assert again.status_code == 400

    history = client.get("/api/drills/attempts/history", headers=headers).json()
    assert [a["id"] for a in history] == [attempt["id"]]


def test_text_drill_uses_local_feedback_without_openai(client, seeded, user):
    headers, _ = user
    attempt = start(client, headers, "prompt-coffee-profitability").json()

    result = client.post(
        f"/api/drills/attempts/{attempt['id']}/submit",
        json={"response": "My structure: revenue and costs. In conclusion, rent increases hurt margins."},
        headers=headers,
    ).json()

    assert result["feedback"]["source"] == "local"
    assert 0 <= result["attempt"]["score"] <= 100


def test_attempts_belong_to_their_owner(client, seeded, user, make_user):
    headers, _ = user
    other_headers, _ = make_user()
    attempt = start(client, headers).json()

    assert client.get(f"/api/drills/attempts/{attempt['id']}", headers=other_headers).status_code == 403
    response = client.post(
        f"/api/drills/attempts/{attempt['id']}/submit",
        json={"response": "80000"},
        headers=other_headers,
    )
    assert response.status_code == 403


def test_concurrent_attempt_limit(client, seeded, user):
    headers, _ = user
    for _ in range(3):
        assert start(client, headers).status_code == 200

    response = start(client, headers)
    assert response.status_code == 429
    assert response.json()["error"]["details"]["in_progress"] == 3


def test_daily_limit(client, seeded, user, monkeypatch):
    monkeypatch.setitem(RATE_LIMITS["FREE"], "drill_attempts_per_day", 1)
    headers, _ = user

    assert start(client, headers).status_code == 200
    response = start(client, headers)

    assert response.status_code == 429
    assert int(response.headers["Retry-After"]) > 0
    assert response.json()["error"]["code"] == "RATE_LIMIT_ERROR"


def test_past_due_subscription_cannot_start(client, seeded, user, db):
    headers, user_id = user
    asyncio.run(db.users.update_one({"id": user_id}, {"$set": {"subscription_status": "PAST_DUE"}}))

    response = start(client, headers)
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "AUTHORIZATION_ERROR"


def test_start_requires_authentication(client, seeded):
    assert start(client, {}).status_code == 401
