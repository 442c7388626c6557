import logging
import os

from config import config
from flask import Flask


def create_app(config_name=None):
    """Application factory pattern"""
    if config_name is None:
        config_name = os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    logging.basicConfig(
        level=logging.DEBUG if app.config.get("DEBUG") else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    # Initialize SQLAlchemy
    from models import db

    db.init_app(app)

    # Import all models to ensure they are registered with SQLAlchemy
    from models.achievement import Achievement
    from models.daily_activity import DailyActivity
    from models.learner_stats import LearnerStats
    from models.progress_record import ProgressRecord
    from models.setting import Setting
    from models.training_session import TrainingSession
    from models.user import User
    from models.word import Word

    @app.cli.command("init-db")
    def init_db():
        """Create tables, seed default settings and close orphaned sessions"""
        from services.settings_service import seed_default_settings
        from services.training_session_service import abandon_orphaned_sessions

        db.create_all()
        seed_default_settings()
        closed = abandon_orphaned_sessions()
        print(f"Database ready ({closed} orphaned sessions abandoned)")

    return app


if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        from models import db

        db.create_all()
