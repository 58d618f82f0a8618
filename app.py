import logging

from flask import Blueprint, Flask, current_app, g, jsonify, request
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from config import DEV_JWT_SECRET, Config
from credentials import CredentialStore
from errors import ApiError, ValidationError
from logging_setup import configure_logging
from models import db, format_timestamp, utcnow
from security import TokenIssuer, login_required
from task_store import TaskPatch, TaskStore

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
tasks_bp = Blueprint("tasks", __name__)


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _credentials():
    return current_app.extensions["credential_store"]


def _tasks():
    return current_app.extensions["task_store"]


def _tokens():
    return current_app.extensions["token_issuer"]


# ==================== AUTHENTICATION ROUTES ====================

@auth_bp.route("/register", methods=["POST"])
def register():
    """Create an account and log it in"""
    body = _json_body()
    user = _credentials().register(body.get("email"), body.get("password"), body.get("name"))
    token = _tokens().issue(user.id)
    return jsonify({"token": token, "user": user.to_public()}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    """Exchange email and password for a fresh token"""
    body = _json_body()
    user = _credentials().authenticate(body.get("email"), body.get("password"))
    token = _tokens().issue(user.id)
    return jsonify({"token": token, "user": user.to_public()})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    """Profile of the token's owner"""
    user = _credentials().get_by_id(g.user_id)
    return jsonify(user.to_profile())


# ==================== TASK CRUD OPERATIONS ====================

@tasks_bp.route("", methods=["GET"])
@login_required
def list_tasks():
    """List the caller's tasks, newest first"""
    completed = request.args.get("completed")
    if completed is not None:
        completed = completed.lower() == "true"

    tasks = _tasks().list(g.user_id, completed=completed)
    return jsonify({"tasks": [task.to_dict() for task in tasks]})


@tasks_bp.route("", methods=["POST"])
@login_required
def create_task():
    """Create an uncompleted task owned by the caller"""
    body = _json_body()
    task = _tasks().create(g.user_id, body.get("title"), body.get("description"))
    return jsonify({"task": task.to_dict()}), 201


@tasks_bp.route("/<int:task_id>", methods=["PUT"])
@login_required
def update_task(task_id):
    """Partial update: only the fields present in the body change"""
    patch = TaskPatch.from_json(_json_body())
    task = _tasks().update(g.user_id, task_id, patch)
    return jsonify({"task": task.to_dict()})


@tasks_bp.route("/<int:task_id>", methods=["DELETE"])
@login_required
def delete_task(task_id):
    """Delete one of the caller's tasks"""
    _tasks().delete(g.user_id, task_id)
    return jsonify({"message": "Task deleted successfully"})


def health():
    """Liveness check, no auth"""
    return jsonify({"status": "ok", "timestamp": format_timestamp(utcnow())})


# ==================== ERROR HANDLERS ====================

def handle_api_error(error):
    return jsonify(error.to_dict()), error.status_code


def handle_http_error(error):
    if error.code == 404:
        message = "Route not found"
    elif error.code == 405:
        message = "Method not allowed"
    else:
        message = error.name
    return jsonify({"error": message}), error.code


def handle_unexpected_error(error):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Internal server error"}), 500


# ==================== INITIALIZATION ====================

def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize database with app
    db.init_app(app)
    CORS(app, origins=app.config["CORS_ORIGINS"])

    if app.config["JWT_SECRET"] == DEV_JWT_SECRET and not app.config.get("TESTING"):
        logger.warning("JWT_SECRET is not set; using the development default")

    app.extensions["token_issuer"] = TokenIssuer(
        app.config["JWT_SECRET"], lifetime=app.config["TOKEN_LIFETIME"]
    )
    app.extensions["credential_store"] = CredentialStore(
        db.session, hash_method=app.config["PASSWORD_HASH_METHOD"]
    )
    app.extensions["task_store"] = TaskStore(db.session)

    prefix = app.config.get("API_PREFIX", "").rstrip("/")
    app.register_blueprint(auth_bp, url_prefix=f"{prefix}/auth")
    app.register_blueprint(tasks_bp, url_prefix=f"{prefix}/tasks")
    app.add_url_rule(f"{prefix}/health", "health", health, methods=["GET"])

    app.register_error_handler(ApiError, handle_api_error)
    app.register_error_handler(HTTPException, handle_http_error)
    app.register_error_handler(Exception, handle_unexpected_error)

    with app.app_context():
        db.create_all()

    return app


if __name__ == "__main__":
    app = create_app()

    with app.app_context():
        logger.info("Database ready at %s", db.engine.url.render_as_string(hide_password=True))
        logger.info("Current users in database: %s", app.extensions["credential_store"].count())
        logger.info("Current tasks in database: %s", app.extensions["task_store"].count())

    logger.info("Starting taskkeeper API on http://localhost:8000")
    app.run(port=8000, debug=True)
