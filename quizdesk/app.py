import csv
import io
import sqlite3
import time
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Dict, Optional

from flask import Flask, Response, g, jsonify, request, session
from werkzeug.exceptions import HTTPException
from werkzeug.security import check_password_hash, generate_password_hash
from werkzeug.utils import secure_filename

from . import config
from .attempts import AttemptStore, SessionAttemptStore
from .availability import AvailabilityCoordinator
from .csv_import import SAMPLE_CSV, import_questions_csv, is_csv_upload
from .db_utils import open_connection
from .errors import CsvImportError, NotFound, QuizError, StoreUnavailable, ValidationError
from .fallback import FallbackCatalog
from .init_db import initialize_database
from .ledger import EXPORT_HEADERS, ResultLedger, aggregate_stats
from .models import Question, Result
from .session import QuizSession, normalize_choice
from .store import QuestionStore

app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.config["JSON_SORT_KEYS"] = False
app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES

ADMIN_PASSWORD_HASH = generate_password_hash(config.ADMIN_PASSWORD)


# --- Database helpers ---

def get_db() -> sqlite3.Connection:
    if "db" not in g:
        conn = open_connection()
        try:
            initialize_database(conn)
        except sqlite3.Error:
            conn.close()
            raise
        g.db = conn
    return g.db  # type: ignore[return-value]


@app.teardown_appcontext
def close_db(_: Any) -> None:
    db = g.pop("db", None)
    if db is not None:
        db.close()


store = QuestionStore(get_db)
fallback = FallbackCatalog(max_questions=config.DEFAULT_MAX_QUESTIONS)
coordinator = AvailabilityCoordinator(store, fallback, retry_seconds=config.STORE_RETRY_SECONDS)
ledger = ResultLedger(get_db, store, applications=coordinator)
attempts = AttemptStore(get_db)
held_attempts = SessionAttemptStore(session)


# --- Errors ---

@app.errorhandler(QuizError)
def handle_quiz_error(exc: QuizError):
    if exc.status_code >= 500:
        app.logger.warning("[%s] %s", type(exc).__name__, exc.message)
    return jsonify({"error": exc.message}), exc.status_code


@app.errorhandler(413)
def handle_too_large(_: Any):
    return jsonify({"error": "Uploaded file is too large"}), 413


@app.errorhandler(Exception)
def handle_unexpected(exc: Exception):
    if isinstance(exc, HTTPException):
        return jsonify({"error": exc.description}), exc.code
    app.logger.exception("[ERROR] unhandled exception on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


# --- Auth ---

def admin_required(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        if session.get("role") != "admin":
            return jsonify({"error": "Admin login required"}), 401
        return view(*args, **kwargs)

    return wrapped


# --- Request helpers ---

def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object")
    return data


def _int_field(data: Dict[str, Any], *keys: str, required: bool = True) -> Optional[int]:
    for key in keys:
        if key in data and data[key] is not None and data[key] != "":
            try:
                return int(data[key])
            except (TypeError, ValueError):
                raise ValidationError(f"{key} must be an integer")
    if required:
        raise ValidationError(f"{keys[0]} is required")
    return None


def _str_field(data: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return str(value).strip()
    return ""


def _csv_response(headers, rows, filename: str) -> Response:
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    return Response(
        buf.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# --- Routes ---

@app.route("/health")
def health():
    return jsonify(
        {
            "status": "healthy",
            "source": coordinator.source_name,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    )


@app.route("/api/admin/login", methods=["POST"])
def admin_login():
    data = _json_body()
    username = _str_field(data, "username")
    password = str(data.get("password") or "")
    if username != config.ADMIN_USERNAME or not check_password_hash(ADMIN_PASSWORD_HASH, password):
        return jsonify({"error": "Invalid credentials"}), 401
    session.clear()
    session["role"] = "admin"
    return jsonify({"ok": True})


@app.route("/api/admin/logout", methods=["POST"])
def admin_logout():
    session.clear()
    return jsonify({"ok": True})


@app.route("/api/applications")
def list_applications():
    return jsonify([a.to_dict() for a in coordinator.application_pool()])


@app.route("/api/applications", methods=["POST"])
@admin_required
def create_application():
    data = _json_body()
    max_questions = _int_field(
        data, "maxQuestionsPerAttempt", "max_questions", required=False
    )
    created = store.create_application(
        _str_field(data, "name"),
        _str_field(data, "description"),
        max_questions if max_questions is not None else config.DEFAULT_MAX_QUESTIONS,
    )
    app.logger.info("[ADMIN] created application %s", created.name)
    return jsonify(created.to_dict()), 201


@app.route("/api/applications/<int:application_id>", methods=["PUT"])
@admin_required
def update_application(application_id: int):
    data = _json_body()
    updated = store.update_application(
        application_id,
        max_questions=_int_field(
            data, "maxQuestionsPerAttempt", "max_questions", "question_count", required=False
        ),
        name=data.get("name"),
        description=data.get("description"),
    )
    return jsonify(updated.to_dict())


@app.route("/api/questions/<int:application_id>")
def sampled_questions(application_id: int):
    raw_count = request.args.get("count")
    count = None
    if raw_count not in (None, ""):
        try:
            count = int(raw_count)
        except ValueError:
            raise ValidationError("count must be an integer")
        if count <= 0:
            raise ValidationError("count must be greater than zero")
    questions = coordinator.questions_for(application_id, count)
    return jsonify([q.to_dict(include_answer=config.EXPOSE_ANSWER_KEY) for q in questions])


@app.route("/api/question-count/<int:application_id>")
def question_count(application_id: int):
    application = coordinator.get_application(application_id)
    if application is None:
        raise NotFound(f"Application {application_id} not found")
    return jsonify({"count": application.question_pool_size})


@app.route("/api/upload-questions", methods=["POST"])
@admin_required
def upload_questions():
    upload = request.files.get("csvFile")
    application_id = _int_field(request.form, "applicationId")
    if upload is None or not upload.filename:
        raise ValidationError("CSV file and application ID are required")
    filename = secure_filename(upload.filename)
    if not is_csv_upload(filename, upload.mimetype):
        raise CsvImportError("Only CSV files are allowed")
    if store.get_application(application_id) is None:
        raise NotFound(f"Application {application_id} not found")

    parsed = import_questions_csv(store, application_id, upload.stream)
    app.logger.info(
        "[UPLOAD] %s -> application %s: %s imported, %s skipped",
        filename,
        application_id,
        parsed.imported,
        parsed.skipped,
    )
    return jsonify(
        {
            "message": f"Successfully uploaded {parsed.imported} questions",
            "count": parsed.imported,
            "skipped": parsed.skipped,
        }
    )


@app.route("/api/sample-questions.csv")
def sample_questions_csv():
    return Response(
        SAMPLE_CSV,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=sample_questions.csv"},
    )


@app.route("/api/quiz-sessions", methods=["POST"])
def start_quiz_session():
    data = _json_body()
    quiz = QuizSession(coordinator, ledger)
    questions = quiz.start(
        _str_field(data, "name", "userName"),
        _str_field(data, "email", "userEmail"),
        _int_field(data, "applicationId"),
    )
    opened = (
        quiz.application.id,
        quiz.user_name,
        quiz.user_email,
        [q.id for q in questions],
        quiz.started_at,
    )
    attempt_id = None
    if coordinator.is_ready:
        try:
            attempts.prune_stale(quiz.started_at - config.ATTEMPT_TTL_SECONDS)
            attempt_id = attempts.open(*opened)
        except StoreUnavailable as exc:
            app.logger.warning("[QUIZ] attempt kept in session: %s", exc.message)
    if attempt_id is None:
        attempt_id = held_attempts.open(*opened, source=coordinator.source_name)
    app.logger.info(
        "[QUIZ] attempt=%s app=%s questions=%s", attempt_id, quiz.application.id, len(questions)
    )
    return jsonify(
        {
            "attemptId": attempt_id,
            "application": quiz.application.to_dict(),
            "questions": [q.to_dict(include_answer=False) for q in questions],
        }
    ), 201


def _finished_attempt(attempt_id: str):
    existing = ledger.find_by_attempt(attempt_id)
    if existing is None:
        return jsonify({"error": "Attempt already submitted"}), 409
    return jsonify(existing.to_dict())


def _answer_choices(data: Dict[str, Any], question_ids) -> list:
    answers = data.get("answers") or []
    if not isinstance(answers, list):
        raise ValidationError("answers must be a list of letters")
    if len(answers) > len(question_ids):
        raise ValidationError("More answers than questions")
    return [normalize_choice(a) for a in answers]


def _resume_quiz(attempt_id: str, attempt: Dict[str, Any], source, choices) -> QuizSession:
    """Rebuild the attempt against ``source`` (the coordinator or the fallback catalog)."""
    question_ids = attempt["question_ids"]
    application = source.get_application(int(attempt["application_id"]))
    if application is None:
        raise NotFound(f"Application {attempt['application_id']} not found")
    stored = {q.id: q for q in source.questions_by_ids(application.id, question_ids)}
    # Questions removed by a later import keep their slot and can never match.
    questions = [
        stored.get(qid) or Question(id=qid, application_id=application.id, text="")
        for qid in question_ids
    ]

    quiz = QuizSession.resume(
        coordinator,
        ledger,
        application,
        attempt["user_name"],
        attempt["user_email"],
        questions,
        float(attempt["started_at"]),
        attempt_id=attempt_id,
    )
    for index, choice in enumerate(choices):
        quiz.select_answer(index, choice)
    return quiz


def _log_submit(attempt_id: str, result: Result) -> None:
    app.logger.info(
        "[SUBMIT] attempt=%s score=%s/%s pct=%s",
        attempt_id,
        result.score,
        result.total_questions,
        result.percentage,
    )


def _submit_held_attempt(attempt_id: str, held: Dict[str, Any], data: Dict[str, Any]):
    if held.get("result") is not None:
        return jsonify(held["result"])
    choices = _answer_choices(data, held["question_ids"])
    source = fallback if held["source"] == fallback.name else coordinator
    result = _resume_quiz(attempt_id, held, source, choices).submit()
    held_attempts.finish(attempt_id, result.to_dict())
    _log_submit(attempt_id, result)
    return jsonify(result.to_dict())


@app.route("/api/quiz-sessions/<attempt_id>/submit", methods=["POST"])
def submit_quiz_session(attempt_id: str):
    data = _json_body()
    held = held_attempts.get(attempt_id)
    if held is not None:
        return _submit_held_attempt(attempt_id, held, data)

    attempt = attempts.get(attempt_id)
    if attempt["finished_at"] is not None:
        return _finished_attempt(attempt_id)
    choices = _answer_choices(data, attempt["question_ids"])
    quiz = _resume_quiz(attempt_id, attempt, coordinator, choices)

    if not attempts.claim(attempt_id, time.time()):
        return _finished_attempt(attempt_id)
    try:
        result = quiz.submit()
    except Exception:
        attempts.release(attempt_id)
        raise
    if result.id is not None:
        attempts.attach_result(attempt_id, result.id)
    _log_submit(attempt_id, result)
    return jsonify(result.to_dict())


@app.route("/api/quiz-results", methods=["POST"])
def save_quiz_result():
    data = _json_body()
    name = _str_field(data, "name", "userName")
    email = _str_field(data, "email", "userEmail")
    if not name or not email:
        raise ValidationError("Missing required fields: name and email")
    time_taken = _int_field(data, "timeTakenSeconds", "timeTaken")
    result = ledger.record(
        Result(
            application_id=_int_field(data, "applicationId"),
            user_name=name,
            user_email=email,
            score=_int_field(data, "score"),
            total_questions=_int_field(data, "totalQuestions"),
            time_taken_seconds=time_taken,
        )
    )
    return jsonify({"message": "Quiz result saved successfully", "id": result.id, "result": result.to_dict()}), 201


@app.route("/api/quiz-results")
@admin_required
def list_quiz_results():
    return jsonify([r.to_dict() for r in ledger.list_all()])


@app.route("/api/quiz-results/stats")
@admin_required
def quiz_result_stats():
    application_id = request.args.get("applicationId", type=int)
    return jsonify(aggregate_stats(ledger.list_all(application_id)))


@app.route("/api/quiz-results/export")
@admin_required
def export_quiz_results():
    application_id = request.args.get("applicationId", type=int)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d")
    return _csv_response(EXPORT_HEADERS, ledger.export_rows(application_id), f"quiz_results_{stamp}.csv")


@app.route("/api/quiz-results/<int:application_id>")
@admin_required
def list_application_results(application_id: int):
    return jsonify([r.to_dict() for r in ledger.list_all(application_id)])


@app.route("/api/quiz-results", methods=["DELETE"])
@admin_required
def clear_quiz_results():
    deleted = ledger.clear_all()
    removed_attempts = attempts.clear_finished()
    app.logger.info("[ADMIN] cleared %s quiz result(s), %s finished attempt(s)", deleted, removed_attempts)
    return jsonify({"message": "All quiz results cleared successfully", "deleted": deleted})


@app.route("/api/admin/dashboard")
@admin_required
def admin_dashboard():
    return jsonify(
        {
            "applications": ledger.per_application_stats(),
            "summary": store.summary(),
            "stats": aggregate_stats(ledger.list_all()),
        }
    )


if __name__ == "__main__":
    app.run(debug=True)  # for local development
