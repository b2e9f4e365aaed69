"""ChoreQuest Flask application - Main entry point."""

import os
import sys
import logging
from pathlib import Path
from flask import Flask, jsonify, g
from flask_migrate import Migrate
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

# Configure logging for the entire application
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout
)

# Import db from models (models.py creates the SQLAlchemy instance)
from chorequest.models import db

# Initialize Flask-Migrate
migrate = Migrate()


def create_app(config_name=None):
    """Application factory pattern for Flask app creation."""
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'default')

    from chorequest.config import config
    app.config.from_object(config[config_name])

    # Ensure data directory exists (skip for in-memory database)
    if app.config['SQLALCHEMY_DATABASE_URI'] != "sqlite:///:memory:":
        data_dir = Path(app.config['DATA_DIR'])
        data_dir.mkdir(parents=True, exist_ok=True)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db, directory=str(Path(__file__).parent / 'migrations'))

    # The gateway sits in front of us; trust its X-Forwarded-* headers
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    # Register middleware
    register_middleware(app)

    # Register routes
    register_routes(app)

    # Initialize background scheduler
    from chorequest.scheduler import init_scheduler
    init_scheduler(app)

    return app


def register_middleware(app):
    """Register middleware for request identity."""

    @app.before_request
    def extract_identity():
        """Read the gateway identity headers onto flask.g."""
        from chorequest.auth import load_identity
        load_identity()


def register_routes(app):
    """Register all application routes."""

    # Register blueprints
    from chorequest.routes import (
        assignments_bp,
        bids_bp,
        completions_bp,
        generation_bp,
        rivalry_bp,
        streaks_bp,
        wallets_bp,
    )

    app.register_blueprint(assignments_bp)
    app.register_blueprint(bids_bp)
    app.register_blueprint(rivalry_bp)
    app.register_blueprint(completions_bp)
    app.register_blueprint(wallets_bp)
    app.register_blueprint(streaks_bp)
    app.register_blueprint(generation_bp)

    @app.route('/health')
    def health():
        """Health check endpoint for monitoring."""
        try:
            # Check database connectivity
            db.session.execute(text('SELECT 1'))
            db_status = 'healthy'
        except Exception as e:
            db_status = f'unhealthy: {str(e)}'

        return jsonify({
            'status': 'healthy' if db_status == 'healthy' else 'degraded',
            'database': db_status,
            'actor_role': getattr(g, 'actor_role', None)
        })


if __name__ == '__main__':
    # Run development server
    create_app().run(host='0.0.0.0', port=8099, debug=True)
