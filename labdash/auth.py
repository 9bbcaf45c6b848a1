from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from .models import User
from .utils import api_error

bp = Blueprint("auth", __name__)


def user_to_dict(u):
    return {"id": u.id, "email": u.email, "name": u.name, "role": u.role}


@bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or request.form
    email = (data.get("email") or "").strip().lower()
    password = (data.get("password") or "").strip()
    user = User.query.filter_by(email=email).first()
    if user and user.check_password(password):
        login_user(user)
        current_app.logger.info("Login ok for %s", email)
        return jsonify(user_to_dict(user))
    current_app.logger.warning("Failed login for %s", email or "<empty>")
    return api_error(401, "INVALID_CREDENTIALS", "Invalid credentials.")


@bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@bp.route("/me")
@login_required
def me():
    return jsonify(user_to_dict(current_user))
