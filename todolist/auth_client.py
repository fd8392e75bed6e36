import logging
from functools import wraps

from flask import current_app, g, request
from werkzeug.local import LocalProxy

from todolist.auth.jwt import decode_access_token
from todolist.domain.models import timestamp
from todolist.errors import AuthenticationError

logger = logging.getLogger(__name__)


class AuthUser:
    def __init__(self, user_id=None, email=""):
        self.id = user_id
        self.email = email
        self.is_authenticated = user_id is not None


class AnonymousUser(AuthUser):
    def __init__(self):
        super().__init__(user_id=None, email="")


current_user = LocalProxy(lambda: getattr(g, "auth_user", AnonymousUser()))


def _bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def _load_user_from_request():
    token = _bearer_token()
    if not token:
        return AnonymousUser()

    secret = current_app.config.get("AUTH_JWT_SECRET", "dev-jwt-secret")
    payload, err = decode_access_token(token, secret)
    if err:
        logger.warning("rejected access token", extra={"error": err, "path": request.path})
        return AnonymousUser()
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("access token subject is not a user id", extra={"path": request.path})
        return AnonymousUser()
    return AuthUser(user_id=user_id, email=payload.get("email", ""))


def init_auth(app, repository=None):
    """Resolve the caller on every request.

    A token subject without a user row gets one; a deactivated user is treated
    as anonymous.
    """

    def resolve_account(user):
        if repository is None:
            return user
        with repository.transaction() as conn:
            repository.ensure_user(
                conn,
                user.id,
                user.email or f"user{user.id}@localhost",
                user.email.split("@")[0] if user.email else f"user{user.id}",
                timestamp(),
            )
            account = repository.fetch_user(conn, user.id)
        if account is None or not account["active"]:
            logger.warning("user account missing or deactivated", extra={"user_id": user.id, "path": request.path})
            return AnonymousUser()
        return user

    @app.before_request
    def load_auth_user():
        if app.config.get("SKIP_AUTH", False):
            # Fixed development user for local runs
            user = AuthUser(user_id=app.config.get("DEV_USER_ID", 1), email="dev@localhost")
        else:
            user = _load_user_from_request()
        if user.is_authenticated:
            user = resolve_account(user)
        g.auth_user = user


def auth_required():
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                raise AuthenticationError("Access token is missing or invalid")
            return func(*args, **kwargs)

        return wrapper

    return decorator
