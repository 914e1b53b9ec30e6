"""End-to-end tests for the JSON API."""

import io
import sqlite3

import quizdesk.app as app_module
from quizdesk.csv_import import SAMPLE_CSV


def _start(client, application_id, name="Ada", email="ada@example.com"):
    return client.post(
        "/api/quiz-sessions",
        json={"name": name, "email": email, "applicationId": application_id},
    )


def test_health_reports_source(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json()["status"] == "healthy"


def test_list_applications(client, roadops):
    data = client.get("/api/applications").get_json()
    by_name = {a["name"]: a for a in data}
    assert set(by_name) == {"RoadOps", "RoadSales", "UES", "Digital"}
    assert by_name["RoadOps"]["questionPoolSize"] == 30
    assert by_name["RoadOps"]["maxQuestionsPerAttempt"] == 25


def test_sampled_questions(client, roadops):
    response = client.get(f"/api/questions/{roadops.id}?count=5")
    assert response.status_code == 200
    questions = response.get_json()
    assert len(questions) == 5
    assert len({q["id"] for q in questions}) == 5
    assert all("correctAnswer" not in q for q in questions)

    assert len(client.get(f"/api/questions/{roadops.id}").get_json()) == 25
    assert len(client.get(f"/api/questions/{roadops.id}?count=100").get_json()) == 30


def test_sampled_questions_rejects_bad_count(client, roadops):
    assert client.get(f"/api/questions/{roadops.id}?count=0").status_code == 400
    assert client.get(f"/api/questions/{roadops.id}?count=-2").status_code == 400
    assert client.get(f"/api/questions/{roadops.id}?count=abc").status_code == 400


def _fallback_key(question_ids, application_id=1):
    catalog = {q.id: q for q in app_module.fallback.questions_for_application(application_id)}
    return [catalog[qid].correct_answer for qid in question_ids]


def test_store_outage_serves_fallback(client, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(app_module, "open_connection", broken)

    apps = client.get("/api/applications").get_json()
    assert len(apps) == 4
    questions = client.get("/api/questions/1?count=2").get_json()
    assert len(questions) == 2
    assert {"id", "text", "options"} == set(questions[0])
    assert client.get("/health").get_json()["source"] == "fallback"

    started = _start(client, 1)
    assert started.status_code == 201
    payload = started.get_json()
    ids = [q["id"] for q in payload["questions"]]
    assert len(ids) == 3

    url = f"/api/quiz-sessions/{payload['attemptId']}/submit"
    submitted = client.post(url, json={"answers": _fallback_key(ids)})
    assert submitted.status_code == 200
    result = submitted.get_json()
    assert result["score"] == 3
    assert result["percentage"] == 100
    assert result["applicationName"] == "RoadOps"
    assert client.post(url, json={"answers": []}).get_json() == result

    assert [r.user_name for r in app_module.ledger.offline_results()] == ["Ada"]


def test_empty_store_still_runs_fallback_quiz(client, conn):
    conn.execute("DELETE FROM application")
    conn.commit()

    started = _start(client, 1)
    assert started.status_code == 201
    payload = started.get_json()
    ids = [q["id"] for q in payload["questions"]]
    answers = _fallback_key(ids)
    answers[0] = "D" if answers[0] != "D" else "C"

    result = client.post(
        f"/api/quiz-sessions/{payload['attemptId']}/submit", json={"answers": answers}
    ).get_json()
    assert result["score"] == 2
    assert result["totalQuestions"] == 3
    assert result["percentage"] == 67
    assert conn.execute("SELECT COUNT(*) FROM quiz_result").fetchall()[0][0] == 0


def test_reported_result_accepted_during_outage(client, monkeypatch):
    def broken(*args, **kwargs):
        raise sqlite3.OperationalError("unable to open database file")

    monkeypatch.setattr(app_module, "open_connection", broken)
    response = client.post(
        "/api/quiz-results",
        json={"name": "Ada", "email": "ada@example.com", "applicationId": 2,
              "score": 1, "totalQuestions": 3, "timeTaken": 30},
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["id"] is None
    assert body["result"]["percentage"] == 33
    assert body["result"]["applicationName"] == "RoadSales"


def test_full_quiz_flow(client, conn, roadops):
    started = _start(client, roadops.id)
    assert started.status_code == 201
    payload = started.get_json()
    questions = payload["questions"]
    assert len(questions) == 25
    assert all("correctAnswer" not in q for q in questions)

    conn.execute(
        "UPDATE quiz_attempt SET started_at = started_at - 300.5 WHERE attempt_id=?",
        (payload["attemptId"],),
    )
    conn.commit()

    answers = ["A"] * 20 + ["B"] * 5
    submitted = client.post(f"/api/quiz-sessions/{payload['attemptId']}/submit", json={"answers": answers})
    assert submitted.status_code == 200
    result = submitted.get_json()
    assert result["score"] == 20
    assert result["totalQuestions"] == 25
    assert result["percentage"] == 80
    assert result["timeTakenSeconds"] == 300
    assert result["applicationName"] == "RoadOps"

    with client.session_transaction() as sess:
        sess["role"] = "admin"
    listing = client.get("/api/quiz-results").get_json()
    assert listing[0]["id"] == result["id"]
    assert listing[0]["percentage"] == 80


def test_submit_is_idempotent(client, roadops):
    attempt_id = _start(client, roadops.id).get_json()["attemptId"]
    url = f"/api/quiz-sessions/{attempt_id}/submit"
    first = client.post(url, json={"answers": ["A", "A"]}).get_json()
    second = client.post(url, json={"answers": ["A"] * 25}).get_json()
    assert first["id"] == second["id"]
    assert second["score"] == 2


def test_submit_rejects_bad_answers(client, roadops):
    attempt_id = _start(client, roadops.id).get_json()["attemptId"]
    url = f"/api/quiz-sessions/{attempt_id}/submit"
    assert client.post(url, json={"answers": ["Z"]}).status_code == 400
    assert client.post(url, json={"answers": ["A"] * 26}).status_code == 400
    assert client.post("/api/quiz-sessions/missing/submit", json={"answers": []}).status_code == 404


def test_submit_after_pool_replaced_keeps_original_total(client, store, roadops):
    attempt_id = _start(client, roadops.id).get_json()["attemptId"]
    store.replace_questions(roadops.id, [])
    result = client.post(
        f"/api/quiz-sessions/{attempt_id}/submit", json={"answers": ["A"] * 25}
    ).get_json()
    assert result["totalQuestions"] == 25
    assert result["score"] == 0


def test_start_rejects_missing_identity_and_empty_pool(client, store, roadops):
    assert _start(client, roadops.id, name="").status_code == 400
    assert _start(client, 9999).status_code == 404
    ues = store.get_application_by_name("UES")
    response = _start(client, ues.id)
    assert response.status_code == 503
    assert "No questions available" in response.get_json()["error"]


def test_save_result_recomputes_percentage(admin_client, roadops):
    response = admin_client.post(
        "/api/quiz-results",
        json={
            "name": "Grace",
            "email": "grace@example.com",
            "applicationId": roadops.id,
            "score": 5,
            "totalQuestions": 6,
            "timeTaken": 42,
            "percentage": 99,
        },
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["result"]["percentage"] == 83

    bad = admin_client.post(
        "/api/quiz-results",
        json={"name": "Grace", "email": "g@example.com", "applicationId": roadops.id,
              "score": 7, "totalQuestions": 6, "timeTaken": 1},
    )
    assert bad.status_code == 400


def test_admin_routes_require_login(client):
    assert client.get("/api/quiz-results").status_code == 401
    assert client.delete("/api/quiz-results").status_code == 401
    assert client.get("/api/admin/dashboard").status_code == 401
    assert client.post("/api/upload-questions").status_code == 401


def test_admin_login_and_logout(client):
    assert client.post("/api/admin/login", json={"username": "admin", "password": "nope"}).status_code == 401
    assert client.post("/api/admin/login", json={"username": "admin", "password": "admin123"}).status_code == 200
    assert client.get("/api/quiz-results").status_code == 200
    client.post("/api/admin/logout")
    assert client.get("/api/quiz-results").status_code == 401


def test_upload_questions_csv(admin_client, store, roadops):
    response = admin_client.post(
        "/api/upload-questions",
        data={"applicationId": str(roadops.id), "csvFile": (io.BytesIO(SAMPLE_CSV.encode("utf-8")), "java.csv")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    assert response.get_json()["count"] == 3
    assert store.get_application(roadops.id).question_pool_size == 3


def test_upload_rejects_non_csv(admin_client, store, roadops):
    response = admin_client.post(
        "/api/upload-questions",
        data={"applicationId": str(roadops.id), "csvFile": (io.BytesIO(b"PK\x03\x04"), "questions.xlsx")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert store.get_application(roadops.id).question_pool_size == 30


def test_upload_unknown_application(admin_client):
    response = admin_client.post(
        "/api/upload-questions",
        data={"applicationId": "9999", "csvFile": (io.BytesIO(SAMPLE_CSV.encode("utf-8")), "java.csv")},
        content_type="multipart/form-data",
    )
    assert response.status_code == 404


def test_update_application_clamps(admin_client, roadops):
    response = admin_client.put(
        f"/api/applications/{roadops.id}", json={"maxQuestionsPerAttempt": 40}
    )
    assert response.status_code == 200
    assert response.get_json()["maxQuestionsPerAttempt"] == 30


def test_create_application_duplicate(admin_client, roadops):
    created = admin_client.post("/api/applications", json={"name": "Fleet", "maxQuestionsPerAttempt": 10})
    assert created.status_code == 201
    assert admin_client.post("/api/applications", json={"name": "Fleet"}).status_code == 409


def test_stats_export_and_clear(admin_client, roadops):
    for score in (25, 10):
        admin_client.post(
            "/api/quiz-results",
            json={"name": "Ada", "email": "ada@example.com", "applicationId": roadops.id,
                  "score": score, "totalQuestions": 25, "timeTaken": 60},
        )

    stats = admin_client.get("/api/quiz-results/stats").get_json()
    assert stats["count"] == 2
    assert stats["meanPercentage"] == 70.0

    per_app = admin_client.get(f"/api/quiz-results/{roadops.id}").get_json()
    assert len(per_app) == 2

    export = admin_client.get("/api/quiz-results/export")
    assert export.mimetype == "text/csv"
    lines = export.get_data(as_text=True).strip().splitlines()
    assert lines[0].startswith("Name,Email,Application,Score")
    assert len(lines) == 3

    dashboard = admin_client.get("/api/admin/dashboard").get_json()
    assert dashboard["summary"]["total_quizzes"] == 2

    cleared = admin_client.delete("/api/quiz-results").get_json()
    assert cleared["deleted"] == 2
    assert admin_client.get("/api/quiz-results").get_json() == []


def test_sample_csv_download(client):
    response = client.get("/api/sample-questions.csv")
    assert response.status_code == 200
    assert response.get_data(as_text=True).startswith("question,optionA")


def test_question_count(client, roadops):
    assert client.get(f"/api/question-count/{roadops.id}").get_json() == {"count": 30}
    assert client.get("/api/question-count/9999").status_code == 404


def test_answer_key_exposed_only_when_enabled(client, roadops, monkeypatch):
    monkeypatch.setattr(app_module.config, "EXPOSE_ANSWER_KEY", True)
    questions = client.get(f"/api/questions/{roadops.id}?count=3").get_json()
    assert [q["correctAnswer"] for q in questions] == ["A", "A", "A"]


def test_clearing_results_removes_finished_attempts(admin_client, conn, roadops):
    done = _start(admin_client, roadops.id).get_json()["attemptId"]
    pending = _start(admin_client, roadops.id).get_json()["attemptId"]
    admin_client.post(f"/api/quiz-sessions/{done}/submit", json={"answers": ["A"]})

    assert admin_client.delete("/api/quiz-results").get_json()["deleted"] == 1
    remaining = [row[0] for row in conn.execute("SELECT attempt_id FROM quiz_attempt").fetchall()]
    assert remaining == [pending]
    assert admin_client.post(f"/api/quiz-sessions/{done}/submit", json={"answers": []}).status_code == 404
