"""Account registration and login for citizens and authority members."""
from flask import Blueprint, current_app, g, jsonify
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from extensions import db
from models import User, UserRole
from utils.decorators import json_body_required
from utils.errors import AuthenticationFailure, ConflictFailure, StorageFailure, ValidationFailure
from utils.security import normalize_email

auth_bp = Blueprint("auth", __name__)


def _parse_role(value) -> UserRole:
    if value in (None, ""):
        return UserRole.CITIZEN
    try:
        return UserRole(str(value).strip().lower())
    except ValueError:
        raise ValidationFailure("Invalid role selected")


@auth_bp.route("/register", methods=["POST"])
@json_body_required("email", "password", "name")
def register():
    body = g.json_body
    email = normalize_email(body["email"])
    name = str(body["name"]).strip()
    if "@" not in email:
        raise ValidationFailure("A valid email is required")
    if not name:
        raise ValidationFailure("name is required")
    role = _parse_role(body.get("role"))

    if User.query.filter_by(email=email).first():
        current_app.logger.info("Registration rejected for existing email", extra={"role": role.value})
        raise ConflictFailure("Email already exists")

    user = User(email=email, role=role.value, name=name)
    user.set_password(str(body["password"]))
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictFailure("Email already exists")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Database error during registration")
        raise StorageFailure()

    current_app.logger.info("User registered", extra={"user_id": user.id, "role": user.role})
    return jsonify({"user": user.to_payload()}), 201


@auth_bp.route("/login", methods=["POST"])
@json_body_required("email", "password")
def login():
    body = g.json_body
    user = User.query.filter_by(email=normalize_email(body["email"])).first()
    if not user or not user.check_password(str(body["password"])):
        current_app.logger.warning("Login failed", extra={"known_email": bool(user)})
        raise AuthenticationFailure("Invalid credentials")

    current_app.logger.info("Login succeeded", extra={"user_id": user.id})
    return jsonify({"user": user.to_payload()})
