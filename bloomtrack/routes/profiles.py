import logging

from flask import Blueprint, g

from ..auth import token_required
from ..db import fetch_one, get_connection
from ..helpers import body, clean_str, error, ok
from ..queries import get_profile

profiles_bp = Blueprint("profiles", __name__)


@profiles_bp.route("", methods=["GET"])
@token_required
def read_profile():
    try:
        with get_connection() as conn:
            profile = get_profile(conn, g.user_id)
    except Exception as e:
        logging.exception("get profile error: %s", e)
        return error("Failed to get profile", 500)
    if not profile:
        return error("Profile not found", 404)
    return ok(profile)


@profiles_bp.route("", methods=["PUT"])
@token_required
def update_profile():
    data = body()
    try:
        with get_connection() as conn:
            profile = fetch_one(conn, """
                UPDATE profiles SET owner_name = %s, mobile = %s, shop_name = %s
                WHERE id = %s
                RETURNING *
            """, (clean_str(data.get("owner_name")), clean_str(data.get("mobile")),
                  clean_str(data.get("shop_name")), g.user_id))
    except Exception as e:
        logging.exception("update profile error: %s", e)
        return error("Failed to update profile", 500)
    if not profile:
        return error("Profile not found", 404)
    return ok(profile)
