import logging
import uuid

from flask import Blueprint, g

from ..auth import hash_password, issue_token, token_required, verify_password
from ..db import execute, fetch_one, get_connection, is_unique_violation
from ..helpers import body, clean_str, error, ok, require_str

auth_bp = Blueprint("auth", __name__)


@auth_bp.route("/signup", methods=["POST"])
def signup():
    data = body()
    email = require_str(data, "email").lower()
    password = data.get("password") or ""
    if not password:
        return error("password is required", 400)
    owner_name = clean_str(data.get("owner_name"))
    mobile = clean_str(data.get("mobile"))
    shop_name = clean_str(data.get("shop_name"))

    try:
        with get_connection() as conn:
            if fetch_one(conn, "SELECT id FROM users WHERE email = %s", (email,)):
                return error("User already exists", 400)
            user_id = uuid.uuid4()
            execute(conn, "INSERT INTO users (id, email, password) VALUES (%s, %s, %s)",
                    (user_id, email, hash_password(password)))
            profile = fetch_one(conn, """
                INSERT INTO profiles (id, owner_name, mobile, shop_name)
                VALUES (%s, %s, %s, %s)
                RETURNING *
            """, (user_id, owner_name, mobile, shop_name))
    except Exception as e:
        if is_unique_violation(e):
            return error("User already exists", 400)
        logging.exception("signup error: %s", e)
        return error("Failed to create account", 500)

    logging.info("new account %s (%s)", user_id, email)
    return ok({
        "token": issue_token(user_id),
        "user": {"id": user_id, "email": email},
        "profile": profile,
    }, 201)


@auth_bp.route("/signin", methods=["POST"])
def signin():
    data = body()
    email = (clean_str(data.get("email")) or "").lower()
    password = data.get("password") or ""

    try:
        with get_connection() as conn:
            user = fetch_one(conn, "SELECT * FROM users WHERE email = %s", (email,))
            if not user or not verify_password(user["password"], password):
                return error("Invalid credentials", 401)
            profile = fetch_one(conn, "SELECT * FROM profiles WHERE id = %s", (user["id"],))
    except Exception as e:
        logging.exception("signin error: %s", e)
        return error("Failed to sign in", 500)

    return ok({
        "token": issue_token(user["id"]),
        "user": {"id": user["id"], "email": user["email"]},
        "profile": profile,
    })


@auth_bp.route("/user", methods=["GET"])
@token_required
def current_user():
    try:
        with get_connection() as conn:
            user = fetch_one(conn, "SELECT id, email FROM users WHERE id = %s", (g.user_id,))
    except Exception as e:
        logging.exception("get user error: %s", e)
        return error("Failed to get user", 500)
    if not user:
        return error("User not found", 404)
    return ok({"user": user})


@auth_bp.route("/signout", methods=["POST"])
def signout():
    return ok({"message": "Signed out successfully"})
