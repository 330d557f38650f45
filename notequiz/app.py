import io
import logging
import time
from uuid import uuid4

from flask import Flask, Response, g, jsonify, render_template, request, send_file

from .config import Settings, env_bool, env_int, env_str
from .errors import ERR, ConfigError, FileTooLargeError, InvalidInputError, QuizGenError
from .export import DOCX_MIME, download_name
from .extract import ALLOWED_EXTENSIONS
from .generation import GenerationClient
from .session import QuizSession


def _json_body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}

def _read_uploads(files, settings: Settings) -> list[tuple[str, bytes]]:
    """Enforce count / per-file size caps and return (filename, bytes) in upload order."""
    if len(files) > settings.max_files:
        raise InvalidInputError(ERR["too_many_files"].format(max=settings.max_files))
    out = []
    limit = settings.max_file_mb * 1024 * 1024
    for f in files:
        if not f or not f.filename:
            continue
        data = f.read()
        if len(data) > limit:
            raise FileTooLargeError(ERR["file_too_big"].format(max=settings.max_file_mb))
        out.append((f.filename, data))
    if not out:
        raise InvalidInputError(ERR["no_file_part"])
    return out


# =========================
# Web app
# =========================
def website(settings: Settings | None = None, client: GenerationClient | None = None) -> Flask:
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    app.logger.setLevel(logging.INFO)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length

    # fail fast on credentials, but keep serving so the UI can show the problem
    startup_error: ConfigError | None = None
    if client is None:
        try:
            client = GenerationClient.from_settings(settings)
        except ConfigError as e:
            startup_error = e
            app.logger.error("Generation disabled: %s", e.user_message)

    session = QuizSession(settings, client)
    app.extensions["notequiz"] = session

    # --- request ID + security headers ---

    @app.before_request
    def _req_ctx():
        # honor inbound X-Request-ID or make one
        rid = request.headers.get("X-Request-ID")
        g.request_id = (rid.strip() if rid else str(uuid4()))

    @app.after_request
    def _secure_headers(resp: Response):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "")
        resp.headers.setdefault("X-Content-Type-Options", "nosniff")
        resp.headers.setdefault("X-Frame-Options", "DENY")
        resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        resp.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")

        # avoid caching session state
        p = request.path or ""
        if p.startswith(("/state", "/sources", "/config", "/generate", "/export", "/history")):
            resp.headers["Cache-Control"] = "no-store"
            resp.headers["Pragma"] = "no-cache"
            resp.headers["Expires"] = "0"
        return resp

    # --- health / readiness probes ---

    @app.route("/healthz")
    def healthz():
        # liveness: process is up
        return {"ok": True, "time": int(time.time())}, 200

    @app.route("/readyz")
    def readyz():
        checks = {
            "openai_key_present": bool(settings.api_key),
            "client_ready": session.client is not None,
            "models": list(settings.models),
        }
        if startup_error is not None:
            checks["error"] = startup_error.user_message
        ok = checks["openai_key_present"] and checks["client_ready"]
        return {"ok": ok, "checks": checks, "time": int(time.time())}, (200 if ok else 503)

    # --- pages & state ---

    @app.route("/")
    def home():
        return render_template(
            "index.html",
            max_file_mb=settings.max_file_mb,
            max_questions=settings.max_questions,
            accept=",".join(sorted(ALLOWED_EXTENSIONS)),
            language=settings.language,
        )

    @app.route("/state")
    def state():
        return session.snapshot(), 200

    # --- sources ---

    @app.route("/sources/files", methods=["POST"])
    def add_files():
        if "file[]" not in request.files:
            raise InvalidInputError(ERR["no_file_part"])
        files = _read_uploads(request.files.getlist("file[]"), settings)
        added, errors = session.add_file_sources(files)
        status = 201 if added else 422
        return {"added": [s.to_dict() for s in added], "errors": errors}, status

    @app.route("/sources/text", methods=["POST"])
    def add_text():
        body = _json_body()
        src = session.add_text(body.get("text") or "", body.get("name"))
        return src.to_dict(), 201

    @app.route("/sources/url", methods=["POST"])
    def add_url():
        src = session.add_url(_json_body().get("url") or "")
        return src.to_dict(), 201

    @app.route("/sources/<source_id>", methods=["DELETE"])
    def remove_source(source_id: str):
        session.remove_source(source_id)
        return session.snapshot(), 200

    @app.route("/sources", methods=["DELETE"])
    def clear_sources():
        session.clear_sources()
        return session.snapshot(), 200

    # --- config & history ---

    @app.route("/config", methods=["PUT"])
    def update_config():
        body = _json_body()
        cfg = session.update_config(
            number_of_questions=body.get("numberOfQuestions"),
            difficulty=body.get("difficulty"),
            prevent_duplicates=body.get("preventDuplicates"),
        )
        return cfg.to_dict(), 200

    @app.route("/config/exclusion", methods=["POST"])
    def set_exclusion():
        f = request.files.get("file")
        if f is None or not f.filename:
            raise InvalidInputError(ERR["no_file_part"])
        [(name, data)] = _read_uploads([f], settings)
        cfg = session.set_exclusion(data, name)
        return cfg.to_dict(), 200

    @app.route("/config/exclusion", methods=["DELETE"])
    def clear_exclusion():
        return session.clear_exclusion().to_dict(), 200

    @app.route("/history", methods=["DELETE"])
    def reset_history():
        session.reset_history()
        return {"historySize": 0}, 200

    # --- generation & export ---

    @app.route("/generate", methods=["POST"])
    def generate():
        if startup_error is not None:
            raise startup_error
        t0 = time.time()
        questions = session.generate()
        app.logger.info("Generated %d question(s) in %.1fs [req=%s]", len(questions), time.time() - t0, g.request_id)
        return {"questions": [q.to_dict() for q in questions]}, 200

    @app.route("/export")
    def export():
        title = (request.args.get("title") or "").strip() or None
        data = session.export(title)
        return send_file(
            io.BytesIO(data),
            mimetype=DOCX_MIME,
            as_attachment=True,
            download_name=download_name(settings.language),
        )

    # log effective config (no secrets)
    app.logger.info("Config: MODELS=%s SEARCH_MODELS=%s | language=%s", ",".join(settings.models),
                    ",".join(settings.search_models), settings.language)
    app.logger.info("Limits: SOURCE_CHARS=%d, MAX_QUESTIONS=%d, MAX_FILES=%d, MAX_FILE_MB=%d, TOTAL_UPLOAD_MB=%d",
                    settings.source_char_limit, settings.max_questions, settings.max_files,
                    settings.max_file_mb, settings.total_upload_mb)

    # --- error handlers ---

    @app.errorhandler(QuizGenError)
    def _quizgen_error(e: QuizGenError):
        if e.detail:
            app.logger.warning("%s [req=%s]: %s", e.__class__.__name__, getattr(g, "request_id", "-"), e.detail)
        return jsonify(error=e.user_message), e.http_status

    @app.errorhandler(413)
    def _too_large(e):
        # Body too large (Flask rejected before hitting the view)
        return jsonify(error=ERR["total_upload_too_big"].format(max=settings.total_upload_mb)), 413

    @app.errorhandler(404)
    def _nf(e):
        return jsonify(error="Not found."), 404

    @app.errorhandler(500)
    def _ise(e):
        # Avoid leaking stack traces; Flask already logged the exception
        return jsonify(error=ERR["internal"]), 500

    return app


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    debug = env_bool("FLASK_DEBUG", False)
    host  = env_str("APP_HOST", "0.0.0.0")
    port  = env_int("APP_PORT", 5000)
    app = website()
    app.run(debug=debug, host=host, port=port, threaded=True)


if __name__ == "__main__":
    main()
