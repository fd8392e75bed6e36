import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from todolist.errors import InternalError, NotFoundError, TaskAppError

logger = logging.getLogger(__name__)


def error_response(error):
    return jsonify({"success": False, "error": error.to_dict()}), error.status_code


def register_error_handlers(app):
    @app.errorhandler(TaskAppError)
    def handle_app_error(error):
        level = logging.ERROR if error.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "request failed",
            extra={
                "path": request.path,
                "method": request.method,
                "status_code": error.status_code,
                "error_type": error.error_type,
            },
        )
        return error_response(error)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if exc.code == 404:
            return error_response(NotFoundError(f"Route {request.method} {request.path} not found"))
        error = TaskAppError(exc.description or exc.name)
        error.status_code = exc.code
        error.error_type = exc.name.upper().replace(" ", "_")
        return error_response(error)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        logger.exception(
            "unhandled error", extra={"path": request.path, "method": request.method}
        )
        return error_response(InternalError("Internal server error"))
