import logging

from flask import Flask, redirect, url_for
from flask_login import current_user

from .extensions import csrf, db, login_manager, migrate, rq


def create_app(config_object='config.Config', **overrides):
    """App factory. ``overrides`` are applied on top of the config object (tests)."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    app.config.update(overrides)
    app.logger.setLevel(getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.login_message_category = 'warning'
    csrf.init_app(app)
    rq.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        from .models.user import User
        return db.session.get(User, int(user_id))

    from .blueprints.auth import bp as auth_bp
    from .blueprints.assessment import bp as assessment_bp
    from .blueprints.admin import bp as admin_bp
    from .blueprints.media import bp as media_bp
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(assessment_bp, url_prefix="/assessment")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(media_bp, url_prefix="/media")

    @app.get('/')
    def index():
        if not current_user.is_authenticated:
            return redirect(url_for('auth.login'))
        if current_user.is_admin:
            return redirect(url_for('admin.dashboard'))
        return redirect(url_for('assessment.home'))

    return app
