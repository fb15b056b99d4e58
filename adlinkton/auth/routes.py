from flask import jsonify, request
from flask_login import current_user, login_required, login_user, logout_user

from adlinkton.auth import auth_bp
from adlinkton.extensions import db, login_manager
from adlinkton.models import ApiToken, User


def _check_credentials(payload: dict):
    username = (payload.get("username") or "").strip()
    password = payload.get("password") or ""
    user = User.query.filter_by(username=username).first()
    if user and user.is_active and user.check_password(password):
        return user
    return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "authentication required"}), 401


@auth_bp.route("/token", methods=["POST"])
def create_token_with_credentials():
    payload = request.get_json(silent=True) or {}
    token_name = (payload.get("token_name") or "Adlinkton API Token").strip()

    user = _check_credentials(payload)
    if not user:
        return jsonify({"error": "invalid credentials"}), 401

    token, token_hash = ApiToken.issue_token()
    row = ApiToken(user_id=user.id, name=token_name, token_hash=token_hash)
    db.session.add(row)
    db.session.commit()
    return jsonify({"token": token, "token_name": token_name, "user_id": user.id})


@auth_bp.route("/login", methods=["POST"])
def login():
    if current_user.is_authenticated:
        return jsonify({"status": "ok", "user_id": current_user.id})

    user = _check_credentials(request.get_json(silent=True) or {})
    if not user:
        return jsonify({"error": "invalid credentials"}), 401
    login_user(user)
    return jsonify({"status": "ok", "user_id": user.id})


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"status": "logged out"})
