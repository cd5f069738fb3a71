"""HTTP API for the planner."""
import logging
import sqlite3

from flask import Flask, current_app, jsonify, request
from flask_cors import CORS

from study_pilot import assistant, dashboard, exams, planner, privacy, profile, quiz, reschedule, syllabus
from study_pilot.config import Settings, load_settings
from study_pilot.db import init_db
from study_pilot.errors import AuthenticationError, StudyPilotError, ValidationError
from study_pilot.models import UserPreferences, parse_iso_date
from study_pilot.oracle import generate_text

logger = logging.getLogger(__name__)


def get_user_id() -> str:
    """Caller identity: X-User-Id header, or a guest_id query parameter."""
    user_id = (request.headers.get("X-User-Id") or "").strip()
    if user_id:
        return user_id
    guest_id = request.args.get("guest_id", "")
    if guest_id.startswith("guest_"):
        return guest_id
    raise AuthenticationError("Unauthorized")


def _settings() -> Settings:
    return current_app.config["SETTINGS"]


def _db() -> str:
    return _settings().db_path


def _body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _preferences(raw) -> UserPreferences:
    if not isinstance(raw, dict):
        raise ValidationError("Preferences must be an object")
    prefs = UserPreferences(**{k: raw.get(k) for k in profile.PREFERENCE_FIELDS})
    prefs.learning_style = prefs.learning_style or "visual"
    return prefs


def create_app(settings: Settings | None = None, oracle_fn=None) -> Flask:
    """Build the Flask app. oracle_fn replaces the Gemini oracle on every AI route (used in tests)."""
    settings = settings or load_settings()
    init_db(settings.db_path)

    app = Flask(__name__)
    app.config["SETTINGS"] = settings
    app.config["ORACLE_FN"] = oracle_fn or (
        lambda prompt, system_instruction: generate_text(prompt, system_instruction, settings)
    )
    CORS(app, resources={r"/*": {"origins": settings.cors_origins}})

    @app.errorhandler(StudyPilotError)
    def handle_planner_error(e: StudyPilotError):
        payload = {"error": e.message}
        issues = getattr(e, "issues", None)
        if issues:
            payload["issues"] = issues
        return jsonify(payload), e.status_code

    @app.errorhandler(sqlite3.Error)
    def handle_db_error(e: sqlite3.Error):
        logger.exception("Database error on %s %s", request.method, request.path)
        return jsonify({"error": "Database error"}), 500

    @app.get("/health")
    def health():
        return jsonify({"status": "OK", "service": "StudyPilot"})

    # --- Onboarding & profile ---

    @app.post("/onboarding/complete")
    def onboarding_complete():
        user_id = get_user_id()
        body = _body()
        marks = profile.parse_marks(body.get("marks") or [])
        prefs = _preferences(body.get("preferences") or {})
        profile.complete_onboarding(_db(), user_id, marks, prefs)
        return jsonify({"success": True})

    @app.put("/user/preferences")
    def update_preferences():
        user_id = get_user_id()
        profile.save_preferences(_db(), user_id, _preferences(request.get_json(silent=True)))
        return jsonify({"success": True, "profile": profile.get_profile(_db(), user_id)})

    @app.get("/user/profile")
    def user_profile():
        user_id = get_user_id()
        marks = profile.get_marks(_db(), user_id)
        return jsonify({
            "profile": profile.get_profile(_db(), user_id),
            "marks": [{"subject": m.subject, "marks": m.marks, "maxMarks": m.max_marks} for m in marks],
        })

    # --- Study plan ---

    @app.post("/plan/generate")
    def generate_plan():
        user_id = get_user_id()
        body = _body()
        start = parse_iso_date(body["startDate"], "startDate") if body.get("startDate") else None
        result = planner.generate_plan(
            _db(),
            user_id,
            current_app.config["ORACLE_FN"],
            start_date=start,
            days=body.get("days", 7),
            hours_per_day=body.get("hoursPerDay", 4),
        )
        return jsonify({
            "success": True,
            "plan": result["plan"].as_dict(),
            "subjectAllocations": [a.as_dict() for a in result["subject_allocations"]],
        })

    @app.get("/plan")
    def get_plan():
        user_id = get_user_id()
        raw = request.args.get("date")
        from_date = parse_iso_date(raw, "date") if raw else None
        return jsonify({"plans": planner.list_sessions(_db(), user_id, from_date)})

    @app.patch("/plan/<int:session_id>/complete")
    def complete_session(session_id: int):
        user_id = get_user_id()
        planner.set_session_completed(_db(), user_id, session_id, bool(_body().get("completed")))
        return jsonify({"success": True})

    @app.get("/plan/missed")
    def missed_sessions():
        user_id = get_user_id()
        return jsonify({"sessions": reschedule.list_missed_sessions(_db(), user_id)})

    @app.patch("/plan/<int:session_id>/reschedule")
    def reschedule_one(session_id: int):
        user_id = get_user_id()
        body = _body()
        reschedule.reschedule_session(
            _db(), user_id, session_id,
            body.get("newDate"), body.get("newStartTime"), body.get("newEndTime"),
        )
        return jsonify({"success": True})

    @app.post("/plan/reschedule-missed")
    def reschedule_all():
        user_id = get_user_id()
        settings = _settings()
        count = reschedule.reschedule_missed(
            _db(), user_id,
            max_per_day=settings.max_sessions_per_day,
            horizon_days=settings.reschedule_horizon_days,
        )
        return jsonify({"success": True, "rescheduled": count})

    @app.delete("/plan/<int:session_id>")
    def delete_session(session_id: int):
        user_id = get_user_id()
        planner.delete_session(_db(), user_id, session_id)
        return jsonify({"success": True})

    # --- Exams ---

    @app.get("/exam-schedule")
    def list_exam_schedule():
        user_id = get_user_id()
        return jsonify({"exams": exams.list_exams(_db(), user_id)})

    @app.post("/exam-schedule")
    def add_exam():
        user_id = get_user_id()
        body = _body()
        exam = exams.add_exam(
            _db(), user_id, body.get("subject"), body.get("examDate"),
            body.get("examName"), body.get("notes"),
        )
        return jsonify({"success": True, "exam": exam})

    @app.patch("/exam-schedule/<int:exam_id>")
    def update_exam(exam_id: int):
        user_id = get_user_id()
        body = _body()
        exams.update_exam(
            _db(), user_id, exam_id, body.get("subject"), body.get("examDate"),
            body.get("examName"), body.get("notes"),
        )
        return jsonify({"success": True})

    @app.delete("/exam-schedule/<int:exam_id>")
    def delete_exam(exam_id: int):
        user_id = get_user_id()
        exams.delete_exam(_db(), user_id, exam_id)
        return jsonify({"success": True})

    @app.get("/exam-results")
    def list_exam_results():
        user_id = get_user_id()
        return jsonify({"results": exams.list_exam_results(_db(), user_id)})

    @app.post("/exam-results")
    def log_exam_results():
        user_id = get_user_id()
        body = _body()
        results = profile.parse_marks(body.get("results") or [])
        exams.log_exam_results(_db(), user_id, body.get("examName"), body.get("examDate"), results)
        return jsonify({"success": True})

    @app.delete("/exam-results/<int:result_id>")
    def delete_exam_result(result_id: int):
        user_id = get_user_id()
        exams.delete_exam_result(_db(), user_id, result_id)
        return jsonify({"success": True})

    @app.get("/performance/trends")
    def performance_trends():
        user_id = get_user_id()
        return jsonify({"trends": exams.get_performance_trends(_db(), user_id)})

    @app.get("/analytics")
    def analytics():
        user_id = get_user_id()
        return jsonify(dashboard.get_analytics(_db(), user_id))

    # --- Syllabus ---

    @app.get("/syllabus")
    def list_syllabus():
        user_id = get_user_id()
        return jsonify({"topics": syllabus.list_topics(_db(), user_id)})

    @app.post("/syllabus/save")
    def save_syllabus():
        user_id = get_user_id()
        topics = syllabus.parse_topics(_body().get("topics"))
        count = syllabus.save_topics(_db(), user_id, topics)
        return jsonify({"success": True, "count": count})

    @app.post("/syllabus/add")
    def add_topic():
        user_id = get_user_id()
        body = _body()
        topic = syllabus.add_topic(
            _db(), user_id, body.get("subject"), body.get("topic"),
            body.get("chapter"), body.get("priority"),
        )
        return jsonify({"success": True, "topic": topic})

    @app.patch("/syllabus/<int:topic_id>/toggle")
    def toggle_topic(topic_id: int):
        user_id = get_user_id()
        syllabus.toggle_topic(_db(), user_id, topic_id)
        return jsonify({"success": True})

    @app.delete("/syllabus/<int:topic_id>")
    def delete_topic(topic_id: int):
        user_id = get_user_id()
        syllabus.delete_topic(_db(), user_id, topic_id)
        return jsonify({"success": True})

    # --- Assistant & quiz ---

    @app.post("/chatbot")
    def chatbot():
        user_id = get_user_id()
        result = assistant.chat(_db(), user_id, _body().get("message"), current_app.config["ORACLE_FN"])
        return jsonify(result)

    @app.post("/quiz/generate")
    def generate_quiz():
        user_id = get_user_id()
        body = _body()
        questions = quiz.generate_quiz(
            _db(), user_id, body.get("subject"), body.get("topic"),
            current_app.config["ORACLE_FN"], chapter=body.get("chapter"),
        )
        return jsonify({"questions": [q.as_dict() for q in questions]})

    # --- Privacy ---

    @app.get("/privacy/data-summary")
    def data_summary():
        user_id = get_user_id()
        return jsonify(privacy.get_data_summary(_db(), user_id))

    @app.get("/privacy/export-data")
    def export_data():
        user_id = get_user_id()
        return jsonify(privacy.export_data(_db(), user_id))

    @app.delete("/privacy/delete-data")
    def delete_data():
        user_id = get_user_id()
        privacy.delete_user_data(_db(), user_id)
        return jsonify({"success": True})

    return app


def main():
    settings = load_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    logger.info("Serving StudyPilot on %s:%d (db %s)", settings.host, settings.port, settings.db_path)
    app.run(host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
