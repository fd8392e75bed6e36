from flask import request

from todolist.auth_client import auth_required, current_user
from todolist.domain.models import parse_bool
from todolist.errors import ValidationError


def _json_body():
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object")
    return payload


def _force_flag():
    return bool(parse_bool(request.args.get("force"), "force"))


def _ok(data, status=200, **extra):
    return {"success": True, "data": data, **extra}, status


def register_routes(app, task_service, category_service, tag_service, statistics_service):
    @app.route("/health", methods=["GET"])
    def health():
        return {"status": "ok"}

    # tasks

    @app.route("/api/tasks", methods=["GET"])
    @auth_required()
    def list_tasks():
        args = request.args
        tasks, pagination = task_service.list_tasks(
            current_user.id,
            filters=args,
            sort={"sort_by": args.get("sort_by"), "sort_direction": args.get("sort_direction")},
            page={"page": args.get("page"), "limit": args.get("limit")},
        )
        return _ok(tasks, pagination=pagination)

    @app.route("/api/tasks/statistics", methods=["GET"])
    @auth_required()
    def task_statistics():
        return _ok(statistics_service.get_statistics(current_user.id))

    @app.route("/api/tasks/<int:task_id>", methods=["GET"])
    @auth_required()
    def get_task(task_id):
        return _ok(task_service.get_task(current_user.id, task_id))

    @app.route("/api/tasks", methods=["POST"])
    @auth_required()
    def create_task():
        task = task_service.create_task(current_user.id, _json_body())
        return _ok(task, 201, message="Task created")

    @app.route("/api/tasks/<int:task_id>", methods=["PUT"])
    @auth_required()
    def update_task(task_id):
        task = task_service.update_task(current_user.id, task_id, _json_body())
        return _ok(task, message="Task updated")

    @app.route("/api/tasks/<int:task_id>/complete", methods=["PATCH"])
    @auth_required()
    def complete_task(task_id):
        payload = _json_body()
        completed = parse_bool(payload.get("completed", True), "completed")
        if completed is None:
            raise ValidationError("completed must be true or false", field="completed")
        task = task_service.set_completed(current_user.id, task_id, completed)
        return _ok(task, message="Task completed" if completed else "Task reopened")

    @app.route("/api/tasks/<int:task_id>", methods=["DELETE"])
    @auth_required()
    def delete_task(task_id):
        task_service.delete_task(current_user.id, task_id)
        return _ok(None, message="Task deleted")

    # categories

    @app.route("/api/categories", methods=["GET"])
    @auth_required()
    def list_categories():
        return _ok(category_service.list_categories(current_user.id))

    @app.route("/api/categories/<int:category_id>", methods=["GET"])
    @auth_required()
    def get_category(category_id):
        return _ok(category_service.get_category(current_user.id, category_id))

    @app.route("/api/categories/<int:category_id>/stats", methods=["GET"])
    @auth_required()
    def category_stats(category_id):
        return _ok(category_service.category_stats(current_user.id, category_id))

    @app.route("/api/categories", methods=["POST"])
    @auth_required()
    def create_category():
        category = category_service.create_category(current_user.id, _json_body())
        return _ok(category, 201, message="Category created")

    @app.route("/api/categories/<int:category_id>", methods=["PUT"])
    @auth_required()
    def update_category(category_id):
        category = category_service.update_category(current_user.id, category_id, _json_body())
        return _ok(category, message="Category updated")

    @app.route("/api/categories/<int:category_id>", methods=["DELETE"])
    @auth_required()
    def delete_category(category_id):
        detached = category_service.delete_category(
            current_user.id, category_id, force=_force_flag()
        )
        return _ok({"detached_tasks": detached}, message="Category deleted")

    # tags

    @app.route("/api/tags", methods=["GET"])
    @auth_required()
    def list_tags():
        return _ok(tag_service.list_tags(current_user.id))

    @app.route("/api/tags/popular", methods=["GET"])
    @auth_required()
    def popular_tags():
        return _ok(tag_service.popular_tags(current_user.id, request.args.get("limit")))

    @app.route("/api/tags/<int:tag_id>", methods=["GET"])
    @auth_required()
    def get_tag(tag_id):
        return _ok(tag_service.get_tag(current_user.id, tag_id))

    @app.route("/api/tags", methods=["POST"])
    @auth_required()
    def create_tag():
        tag = tag_service.create_tag(current_user.id, _json_body())
        return _ok(tag, 201, message="Tag created")

    @app.route("/api/tags/<int:tag_id>", methods=["PUT"])
    @auth_required()
    def update_tag(tag_id):
        tag = tag_service.update_tag(current_user.id, tag_id, _json_body())
        return _ok(tag, message="Tag updated")

    @app.route("/api/tags/<int:tag_id>", methods=["DELETE"])
    @auth_required()
    def delete_tag(tag_id):
        removed = tag_service.delete_tag(current_user.id, tag_id, force=_force_flag())
        return _ok({"removed_associations": removed}, message="Tag deleted")
