import os

import structlog
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from config import Config
from houseshare.extensions import db, login_manager
from houseshare.gateway import PaystackGateway
from houseshare.logs import configure_logging
from houseshare.services.errors import ServiceError

log = structlog.get_logger(__name__)


def create_app(config_class=Config, gateway=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    configure_logging(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    # User loader for Flask-Login
    from houseshare.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'unauthenticated', 'msg': 'Login required'}), 401

    # Payment gateway (injected in tests)
    if gateway is None:
        gateway = PaystackGateway(
            secret_key=app.config['PAYSTACK_SECRET_KEY'],
            base_url=app.config['PAYSTACK_BASE_URL'],
            timeout=app.config['GATEWAY_TIMEOUT'],
        )
    app.extensions['payment_gateway'] = gateway

    # Error handlers
    @app.errorhandler(ServiceError)
    def handle_service_error(error):
        if error.status_code >= 500:
            log.error("service_failure", error=error.message, code=error.code)
            return jsonify({'error': error.code, 'msg': 'Server error'}), error.status_code
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        db.session.rollback()
        log.error("database_error", error=str(error))
        return jsonify({'error': 'server_error', 'msg': 'Server error'}), 500

    # Register blueprints
    from houseshare.routes.auth import auth_bp
    from houseshare.routes.houses import houses_bp
    from houseshare.routes.bills import bills_bp
    from houseshare.routes.wallet import wallet_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(houses_bp)
    app.register_blueprint(bills_bp)
    app.register_blueprint(wallet_bp)

    @app.route('/')
    def index():
        return jsonify({'status': 'API Running'})

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if uri.startswith('sqlite:///'):
        os.makedirs(os.path.dirname(os.path.abspath(uri[len('sqlite:///'):])), exist_ok=True)

    with app.app_context():
        db.create_all()
        log.info("database_ready")

    return app
