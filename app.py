from flask import Flask, jsonify
from config import Config
from routes import health_bp, booking_bp, payments_bp, webhook_bp, pay_pages_bp

from models import db
from flask_migrate import Migrate
from services.exceptions import BookingError
from services.gateway import StripeGateway
from services.notifier import SmtpNotifier


def create_app(config_object=None):
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    # Register routes
    app.register_blueprint(health_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(webhook_bp)
    app.register_blueprint(pay_pages_bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # External collaborators (tests swap these for fakes)
    app.extensions["payment_gateway"] = StripeGateway(
        secret_key=app.config.get("STRIPE_SECRET_KEY"),
        timeout_seconds=app.config.get("PAYMENT_GATEWAY_TIMEOUT_SECONDS", 10),
        product_name=f"{app.config.get('BUSINESS_NAME', 'Car wash')} booking",
    )
    app.extensions["booking_notifier"] = SmtpNotifier.from_config(app.config)

    @app.errorhandler(BookingError)
    def _booking_error(exc):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", type(exc).__name__, exc)
        return jsonify(error=str(exc)), exc.status_code

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        # pay pages are served from here too, so allow their inline styles
        resp.headers["Content-Security-Policy"] = "default-src 'none'; style-src 'unsafe-inline'; frame-ancestors 'none';"
        return resp


    register_cli(app)


    return app

#-------------------------
import click
from services import get_booking_service

def register_cli(app):
    @app.cli.command("reconcile-orphans")
    @click.option("--ttl-minutes", type=int, default=None,
                  help="Age after which a Pending booking without payment is failed.")
    def reconcile_orphans(ttl_minutes):
        """Fail Pending bookings whose payment session was never created."""
        count = get_booking_service(app).reconcile_orphans(ttl_minutes=ttl_minutes)
        click.echo(f"{count} orphan booking(s) marked Failed")

#-------------------------




if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
