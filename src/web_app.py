import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

from flask import Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException
from werkzeug.utils import secure_filename

from config import Settings
from dataset_loader import parse_upload
from errors import InvalidRequestError, ReconError
from exporter import ALL, Exporter, export_filename
from logging_setup import configure_logging, get_logger
from models import ReconMode
from recon_engine import reconcile
from session_store import SessionStore

logger = get_logger("recon.web_app")

UPLOAD_FIELDS = ("fileA", "fileB")
MODES = [mode.value for mode in ReconMode]


def get_store() -> SessionStore:
    return current_app.extensions["recon_store"]


def save_uploads(upload_root: str) -> Dict[str, str]:
    """
    Save both uploaded files into a fresh directory under the upload root.

    Returns:
        Mapping of form field name to saved path

    Raises:
        InvalidRequestError: If either file is missing
    """
    files = {name: request.files.get(name) for name in UPLOAD_FIELDS}
    if any(f is None or f.filename == "" for f in files.values()):
        raise InvalidRequestError("Please upload both fileA and fileB.")

    os.makedirs(upload_root, exist_ok=True)
    upload_dir = tempfile.mkdtemp(dir=upload_root)
    paths = {}
    for name, storage in files.items():
        filename = secure_filename(storage.filename) or f"{name}.csv"
        path = os.path.join(upload_dir, f"{name}_{filename}")
        storage.save(path)
        paths[name] = path
    return paths


def validate_reconcile_body(body: Any) -> Dict[str, Any]:
    """
    Check the shape of a reconcile request.

    Mapping content is never rejected; rules must be an object in custom mode
    but their values are parsed leniently by the engine.

    Raises:
        InvalidRequestError: With one issue per offending field
    """
    if not isinstance(body, dict):
        raise InvalidRequestError(
            "Invalid request body", [{"path": [], "message": "Expected a JSON object"}]
        )

    issues: List[Dict[str, Any]] = []
    session_id = body.get("sessionId")
    if not isinstance(session_id, str) or len(session_id) < 3:
        issues.append({"path": ["sessionId"], "message": "Expected a string of at least 3 characters"})

    mode = body.get("mode")
    if mode not in MODES:
        issues.append({"path": ["mode"], "message": f"Expected one of {MODES}"})
    elif mode == ReconMode.CUSTOM.value and not isinstance(body.get("rules"), dict):
        issues.append({"path": ["rules"], "message": "Rules object is required in custom mode"})

    if issues:
        raise InvalidRequestError("Invalid request body", issues)

    return {
        "session_id": session_id,
        "mode": mode,
        "mapping": body.get("mapping"),
        "rules": body.get("rules"),
    }


def register_routes(app: Flask) -> None:

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    @app.route("/api/sessions", methods=["POST"])
    def create_session():
        upload_root = current_app.config["UPLOAD_FOLDER"]
        paths = save_uploads(upload_root)
        try:
            dataset_a, dataset_b, meta = parse_upload(paths["fileA"], paths["fileB"])
        finally:
            shutil.rmtree(os.path.dirname(paths["fileA"]), ignore_errors=True)

        session = get_store().create(dataset_a, dataset_b, meta)
        return jsonify({"sessionId": session.session_id, "meta": session.meta_dict()})

    @app.route("/api/reconcile", methods=["POST"])
    def reconcile_session():
        params = validate_reconcile_body(request.get_json(silent=True))
        store = get_store()
        session = store.get(params["session_id"])

        outcome = reconcile(
            session.dataset_a.rows,
            session.dataset_b.rows,
            mapping=params["mapping"],
            mode=params["mode"],
            rules=params["rules"],
        )
        store.save_outcome(session.session_id, outcome)

        return jsonify({"meta": session.meta_dict(), **outcome.to_dict()})

    @app.route("/api/export/<session_id>")
    def export_session(session_id: str):
        status_filter = str(request.args.get("filter") or ALL)
        outcome = get_store().last_outcome(session_id)
        body = Exporter(outcome).to_csv(status_filter)
        filename = export_filename(session_id, status_filter)
        return Response(
            body,
            mimetype="text/csv",
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )


def register_error_handlers(app: Flask) -> None:

    @app.errorhandler(ReconError)
    def handle_recon_error(e: ReconError):
        logger.warning("%s %s -> %d %s", request.method, request.path, e.status_code, e.message)
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e: HTTPException):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.exception("unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def register_cors(app: Flask) -> None:

    @app.after_request
    def add_cors_headers(response):
        allowed = current_app.config.get("ALLOWED_ORIGINS") or []
        origin = request.headers.get("Origin")
        if origin and (origin in allowed or "*" in allowed):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Expose-Headers"] = "Content-Disposition"
        return response


def create_app(settings: Optional[Settings] = None, store: Optional[SessionStore] = None) -> Flask:
    """
    Build the Flask application.

    Args:
        settings: Server settings; read from the environment when omitted
        store: Session store; a fresh in-memory store when omitted

    Returns:
        Configured Flask app
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = Flask(__name__)
    app.config.update(settings.to_flask_config())
    if store is None:
        store = SessionStore(ttl_seconds=settings.session_ttl_seconds)
    app.extensions["recon_store"] = store

    register_routes(app)
    register_error_handlers(app)
    register_cors(app)
    return app


if __name__ == "__main__":
    settings = Settings.from_env()
    create_app(settings).run(host=settings.host, port=settings.port, debug=settings.debug)
