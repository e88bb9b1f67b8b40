from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qsl

from flask import Blueprint, Flask, Response, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from ..engine.errors import ExternalError, InvalidArgumentError, NotFoundError, OJError
from ..engine.service import OJService
from ..models.models import JobFilter, SubmissionRequest
from ..utils.config_manager import ConfigManager
from ..utils.logger_config import get_logger

logger = get_logger("server")

api_bp = Blueprint("ojcore_api", __name__)


def _get_service() -> OJService:
    return current_app.extensions["ojcore"]


def success_response(data: Any) -> Response:
    return jsonify(data)


def error_response(error: OJError) -> Tuple[Response, int]:
    return jsonify(error.to_dict()), error.status_code


def _parse_path_id(raw: str, what: str) -> int:
    """Path ids that are not integers name nothing that exists"""
    try:
        return int(raw)
    except ValueError:
        raise NotFoundError(f"{what} {raw} not found.") from None


def _json_body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgumentError("Request body must be a JSON object.")
    return data


def _require_int(data: Dict[str, Any], key: str, default: Optional[int] = None) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"Field '{key}' must be an integer.")
    return value


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise InvalidArgumentError(f"Field '{key}' must be a string.")
    return value


def _require_int_list(data: Dict[str, Any], key: str) -> List[int]:
    value = data.get(key)
    if not isinstance(value, list) or any(isinstance(v, bool) or not isinstance(v, int) for v in value):
        raise InvalidArgumentError(f"Field '{key}' must be a list of integers.")
    return value


def _raw_query_args() -> Dict[str, str]:
    """
    Query arguments with '+' kept literal.

    Language names such as "C++" are commonly sent unencoded, and the usual
    form decoding would turn them into spaces.
    """
    raw = request.query_string.decode("utf-8").replace("+", "%2B")
    return dict(parse_qsl(raw, keep_blank_values=True))


def _optional_int_arg(args: Dict[str, str], key: str) -> Optional[int]:
    if key not in args:
        return None
    try:
        return int(args[key])
    except ValueError:
        raise InvalidArgumentError("Invalid argument.") from None


@api_bp.errorhandler(OJError)
def handle_oj_error(error: OJError):
    return error_response(error)


@api_bp.route("/jobs", methods=["POST"])
def post_job():
    """
    Submit source code for judging.

    Request format:
    {
        "source_code": "...",
        "language": "Rust",
        "user_id": 0,
        "contest_id": 0,
        "problem_id": 0
    }

    Returns the job snapshot as soon as the job is Running.
    """
    data = _json_body()
    submission = SubmissionRequest(
        source_code=_require_str(data, "source_code"),
        language=_require_str(data, "language"),
        user_id=_require_int(data, "user_id"),
        contest_id=_require_int(data, "contest_id", 0),
        problem_id=_require_int(data, "problem_id"),
    )
    job = _get_service().jobs.submit(submission)
    return success_response(job.to_dict())


@api_bp.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id: str):
    job = _get_service().jobs.get(_parse_path_id(job_id, "Job"))
    return success_response(job.to_dict())


@api_bp.route("/jobs", methods=["GET"])
def list_jobs():
    """
    List jobs ascending by id.

    Query Parameters (all optional, combined with AND):
        user_id, user_name, contest_id, problem_id, language,
        from, to (inclusive submission time bounds), state, result
    """
    args = _raw_query_args()
    job_filter = JobFilter(
        user_id=_optional_int_arg(args, "user_id"),
        user_name=args.get("user_name"),
        contest_id=_optional_int_arg(args, "contest_id"),
        problem_id=_optional_int_arg(args, "problem_id"),
        language=args.get("language"),
        from_time=args.get("from"),
        to_time=args.get("to"),
        state=args.get("state"),
        result=args.get("result"),
    )
    jobs = _get_service().jobs.list(job_filter)
    return success_response([job.to_dict() for job in jobs])


@api_bp.route("/jobs/<job_id>", methods=["PUT"])
def rejudge_job(job_id: str):
    job = _get_service().jobs.rejudge(_parse_path_id(job_id, "Job"))
    return success_response(job.to_dict())


@api_bp.route("/users", methods=["POST"])
def post_user():
    """Create a user, or rename one when "id" is given"""
    data = _json_body()
    name = _require_str(data, "name")
    registry = _get_service().registry
    if data.get("id") is not None:
        user = registry.rename_user(_require_int(data, "id"), name)
    else:
        user = registry.create_user(name)
    return success_response(user.to_dict())


@api_bp.route("/users", methods=["GET"])
def list_users():
    users = _get_service().registry.list_users()
    return success_response([user.to_dict() for user in users])


@api_bp.route("/contests", methods=["POST"])
def post_contest():
    """
    Create a contest, or replace one when "id" is given.

    Request format:
    {
        "id": 1,                       (optional)
        "name": "Weekly",
        "from": "2022-08-27T02:05:29.000Z",
        "to": "2022-08-27T02:05:30.000Z",
        "problem_ids": [0, 1],
        "user_ids": [0, 1],
        "submission_limit": 3
    }
    """
    data = _json_body()
    contest_id = _require_int(data, "id") if data.get("id") is not None else None
    contest = _get_service().registry.save_contest(
        contest_id=contest_id,
        name=_require_str(data, "name"),
        from_time=_require_str(data, "from"),
        to_time=_require_str(data, "to"),
        problem_ids=_require_int_list(data, "problem_ids"),
        user_ids=_require_int_list(data, "user_ids"),
        submission_limit=_require_int(data, "submission_limit", 0),
    )
    return success_response(contest.to_dict())


@api_bp.route("/contests", methods=["GET"])
def list_contests():
    contests = _get_service().registry.list_contests()
    return success_response([contest.to_dict() for contest in contests])


@api_bp.route("/contests/<contest_id>", methods=["GET"])
def get_contest(contest_id: str):
    contest = _get_service().registry.get_contest(_parse_path_id(contest_id, "Contest"))
    return success_response(contest.to_dict())


@api_bp.route("/contests/<contest_id>/ranklist", methods=["GET"])
def get_ranklist(contest_id: str):
    """
    Ranklist of a contest (contest 0 ranks every user on every problem).

    Query Parameters:
        scoring_rule: "latest" or "highest" (default)
        tie_breaker: "submission_time", "submission_count", "user_id" or "none" (default)
    """
    entries = _get_service().ranklist.compute(
        _parse_path_id(contest_id, "Contest"),
        scoring_rule=request.args.get("scoring_rule"),
        tie_breaker=request.args.get("tie_breaker"),
    )
    return success_response([entry.to_dict() for entry in entries])


@api_bp.route("/health", methods=["GET"])
def health():
    service = _get_service()
    return success_response({
        "status": "ok",
        "execution_engine": service.engine.ping(),
        "next_ids": service.ids.snapshot(),
    })


def create_app(
    config: Optional[ConfigManager] = None,
    service: Optional[OJService] = None,
    flush: bool = False,
) -> Flask:
    """Create the Flask app around an OJService built from ``config`` unless one is given"""
    app = Flask(__name__)
    if service is None:
        service = OJService.from_config(config or ConfigManager(), flush=flush)
    app.extensions["ojcore"] = service
    app.register_blueprint(api_bp)

    @app.errorhandler(Exception)
    def handle_unexpected(error: Exception):
        if isinstance(error, HTTPException):
            return error
        if isinstance(error, OJError):
            return error_response(error)
        logger.error(f"Unhandled error on {request.method} {request.path}: {error}", exc_info=True)
        return error_response(ExternalError(f"Internal error: {error}"))

    logger.info("Created Flask application")
    return app


def run_api(host: str = "127.0.0.1", port: int = 12345, debug: bool = False,
            config: Optional[ConfigManager] = None, flush: bool = False) -> None:
    """
    Start the Flask API server.

    Args:
        host: Host address to bind to
        port: Port number to bind to
        debug: Enable debug mode
        config: Configuration manager instance (optional)
        flush: Drop persisted users, contests and jobs before starting
    """
    app = create_app(config, flush=flush)
    service: OJService = app.extensions["ojcore"]
    logger.info(
        f"Serving {len(service.problems)} problems in {len(service.languages.names())} languages "
        f"on {host}:{port}"
    )
    try:
        app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)
    finally:
        service.close()
