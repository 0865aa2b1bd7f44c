from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request
from werkzeug.security import check_password_hash, generate_password_hash

# ---------------------------
# Passwords
# ---------------------------
def hash_password(password):
    return generate_password_hash(password)


def verify_password(password_hash, password):
    if not password_hash or password is None:
        return False
    return check_password_hash(password_hash, password)


# ---------------------------
# Tokens
# ---------------------------
def create_token(user_id, secret, days=7, algo="HS256"):
    payload = {
        "sub": str(user_id),
        "exp": datetime.now(timezone.utc) + timedelta(days=days),
    }
    return jwt.encode(payload, secret, algorithm=algo)


def decode_token(token, secret, algo="HS256"):
    return jwt.decode(token, secret, algorithms=[algo])


def issue_token(user_id):
    settings = current_app.config["SETTINGS"]
    return create_token(user_id, settings.jwt_secret, days=settings.jwt_expire_days, algo=settings.jwt_algo)


def token_required(f):
    @wraps(f)
    def wrapped(*args, **kwargs):
        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer "):
            return jsonify({"error": "Access token required"}), 401
        token = auth.split(" ", 1)[1].strip()
        settings = current_app.config["SETTINGS"]
        try:
            payload = decode_token(token, settings.jwt_secret, settings.jwt_algo)
        except jwt.ExpiredSignatureError:
            return jsonify({"error": "Token expired"}), 401
        except jwt.InvalidTokenError as e:
            return jsonify({"error": "Invalid token", "detail": str(e)}), 401
        user_id = payload.get("sub")
        if not user_id:
            return jsonify({"error": "Invalid token"}), 401
        g.user_id = user_id
        return f(*args, **kwargs)
    return wrapped
