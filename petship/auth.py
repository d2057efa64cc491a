# petship/auth.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import ConflictError, PetshipError, ValidationError
from .extensions import db, limiter, login_manager
from .models import User
from .schemas import LoginRequest, SignupRequest, parse_body
from .utils.passwords import hash_password, validate_password, verify_password
from .utils.serializers import user_dict

auth = Blueprint("auth", __name__)

DEMO_EMAIL_DOMAIN = "@example.com"
STAFF_ORG = "org_petshippers"


class InvalidCredentials(PetshipError):
    status_code = 401
    error = "invalid_credentials"


# =========================================================
# Flask-Login user loader
# =========================================================
@login_manager.user_loader
def load_user(user_id: str):
    try:
        return db.session.get(User, int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "unauthenticated", "message": "Login required."}), 401


# =========================================================
# Helpers
# =========================================================
def _login_rate_limit() -> str:
    return current_app.config.get("LOGIN_RATE_LIMIT", "10 per minute")


def _find_user(email: str) -> User | None:
    return User.query.filter(db.func.lower(User.email) == email).first()


def _demo_role_for(email: str) -> str:
    local = email.split("@", 1)[0]
    if local in ("admin", "staff"):
        return local
    return "client"


def _create_demo_user(email: str) -> User:
    """Unknown *@example.com logins become demo accounts; the role comes from the local part."""
    role = _demo_role_for(email)
    user = User(
        name=email.split("@", 1)[0].replace(".", " ").title() or "Demo User",
        email=email,
        role=role,
        org_id=STAFF_ORG if role in ("admin", "staff") else "org_client",
    )
    db.session.add(user)
    db.session.commit()
    current_app.logger.info("Created demo %s user %s", role, email)
    return user


# =========================================================
# Login / Logout
# =========================================================
@auth.route("/login", methods=["POST"])
@limiter.limit(_login_rate_limit)
def login():
    body = parse_body(LoginRequest)
    demo = bool(current_app.config.get("DEMO_LOGIN_ENABLED"))

    user = _find_user(body.email)
    if user is None and demo and body.email.endswith(DEMO_EMAIL_DOMAIN):
        try:
            user = _create_demo_user(body.email)
        except SQLAlchemyError:
            db.session.rollback()
            current_app.logger.exception("Demo user creation failed for %s", body.email)
            user = _find_user(body.email)

    if user is None or not verify_password(user.password_hash, body.password, allow_missing_hash=demo):
        current_app.logger.info("Failed login for %s", body.email)
        raise InvalidCredentials("Invalid email or password.")

    login_user(user)
    return jsonify(user_dict(user)), 200


@auth.route("/logout", methods=["POST"])
def logout():
    """Not login_required: logging out twice is harmless."""
    logout_user()
    return jsonify({"ok": True}), 200


@auth.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(user_dict(current_user)), 200


# =========================================================
# Signup (clients only)
# =========================================================
@auth.route("/signup", methods=["POST"])
@limiter.limit(_login_rate_limit)
def signup():
    body = parse_body(SignupRequest)
    if not body.password and not current_app.config.get("DEMO_LOGIN_ENABLED"):
        raise ValidationError("Password is required.")

    password_hash = None
    if body.password:
        ok, msg = validate_password(body.password)
        if not ok:
            raise ValidationError(msg)
        password_hash = hash_password(body.password)

    if _find_user(body.email) is not None:
        raise ConflictError("An account with this email already exists.")

    user = User(name=body.name, email=body.email, role="client", password_hash=password_hash)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("An account with this email already exists.")

    login_user(user)
    current_app.logger.info("New client signup %s", user.email)
    return jsonify(user_dict(user)), 201
