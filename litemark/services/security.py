import hmac
from functools import wraps

from flask import current_app, g, jsonify, request
from itsdangerous import BadData, URLSafeTimedSerializer
from werkzeug.security import check_password_hash


def _serializer(secret_key: str) -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(secret_key=secret_key, salt="litemark-auth")


def issue_token(secret_key: str, username: str) -> str:
    return _serializer(secret_key).dumps({"username": username})


def verify_token(secret_key: str, token: str, max_age: int) -> dict | None:
    try:
        payload = _serializer(secret_key).loads(token, max_age=max_age)
    except BadData:
        return None
    if not isinstance(payload, dict) or not payload.get("username"):
        return None
    return payload


def validate_admin_credentials(config, username: str, password: str) -> bool:
    """Check a login against the configured admin.

    ``ADMIN_PASSWORD_HASH`` (a werkzeug password hash) wins over the plain
    ``ADMIN_PASSWORD`` when both are set.
    """
    expected_user = str(config.get("ADMIN_USERNAME") or "")
    user_ok = hmac.compare_digest(username.encode("utf-8"), expected_user.encode("utf-8"))
    password_hash = config.get("ADMIN_PASSWORD_HASH")
    if password_hash:
        password_ok = check_password_hash(password_hash, password)
    else:
        expected_password = str(config.get("ADMIN_PASSWORD") or "")
        password_ok = hmac.compare_digest(
            password.encode("utf-8"), expected_password.encode("utf-8")
        )
    return user_ok and password_ok


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    token = auth_header.removeprefix("Bearer ").strip()
    return token or None


def get_authenticated_user() -> str | None:
    token = _bearer_token()
    if not token:
        return None
    payload = verify_token(
        current_app.config["SECRET_KEY"],
        token,
        max_age=current_app.config["AUTH_TOKEN_MAX_AGE_SECONDS"],
    )
    return payload["username"] if payload else None


def api_auth_required():
    def decorator(func):
        @wraps(func)
        def wrapped(*args, **kwargs):
            username = get_authenticated_user()
            if not username:
                return jsonify({"error": "authentication required"}), 401
            g.api_user = username
            return func(*args, **kwargs)

        return wrapped

    return decorator
