from flask import current_app, jsonify, request

from litemark.auth import auth_bp
from litemark.services.security import issue_token, validate_admin_credentials


@auth_bp.route("/login", methods=["POST"])
def login():
    payload = request.get_json(silent=True) or {}
    username = str(payload.get("username") or "").strip()
    password = str(payload.get("password") or "")

    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400

    if not validate_admin_credentials(current_app.config, username, password):
        current_app.logger.warning("Failed login attempt for %s", username)
        return jsonify({"error": "invalid credentials"}), 401

    token = issue_token(current_app.config["SECRET_KEY"], username)
    return jsonify(
        {
            "token": token,
            "username": username,
            "expiresIn": current_app.config["AUTH_TOKEN_MAX_AGE_SECONDS"],
        }
    )
