import logging

from flask import Flask
from bloodnet.extensions import db, migrate, jwt, scheduler, mail, cors
from bloodnet.config import Config
from bloodnet.services import init_services
from bloodnet.services.notifier import init_sms

# Import controllers (blueprints) for each module
from bloodnet.controllers.donation_controller import donation_bp
from bloodnet.controllers.blood_request_controller import blood_request_bp
from bloodnet.controllers.donor_controller import donor_bp
from bloodnet.controllers.blood_bank_controller import blood_bank_bp
from bloodnet.controllers.donation_schedule_controller import donation_schedule_bp


def create_app(config_object=None, **service_overrides):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    cors.init_app(app)
    init_sms(app)

    init_services(app, **service_overrides)

    # Register Blueprints with appropriate URL prefixes
    app.register_blueprint(donation_bp, url_prefix='/api/v1/donations')
    app.register_blueprint(blood_request_bp, url_prefix='/api/v1/blood-requests')
    app.register_blueprint(donor_bp, url_prefix='/api/v1/donors')
    app.register_blueprint(blood_bank_bp, url_prefix='/api/v1/blood-banks')
    app.register_blueprint(donation_schedule_bp, url_prefix='/api/v1/donation-schedules')

    if app.config.get('SCHEDULER_ENABLED'):
        from bloodnet.jobs import register_jobs

        scheduler.init_app(app)
        register_jobs()
        scheduler.start()

    return app


# Ensure the app runs only if this script is executed directly
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
