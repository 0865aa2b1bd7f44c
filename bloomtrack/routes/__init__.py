from .admin import admin_bp
from .auth import auth_bp
from .payments import payments_bp
from .profiles import profiles_bp
from .reports import reports_bp
from .sellers import sellers_bp
from .sold_to import sold_to_bp
from .transactions import transactions_bp

BLUEPRINTS = [
    (auth_bp, "/api/auth"),
    (profiles_bp, "/api/profiles"),
    (sellers_bp, "/api/sellers"),
    (transactions_bp, "/api/sellers"),
    (sold_to_bp, "/api/sellers"),
    (payments_bp, "/api/sellers"),
    (reports_bp, "/api/reports"),
    (admin_bp, "/api/admin"),
]


def register_blueprints(app):
    for bp, prefix in BLUEPRINTS:
        app.register_blueprint(bp, url_prefix=prefix)
