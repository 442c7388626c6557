import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class"""

    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key-change-in-production")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    DEBUG = os.getenv("DEBUG", "True") == "True"

    # SQLAlchemy configuration
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///vocab.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Fallback values for the training settings; rows in the settings table win
    TRAINING_SETTINGS = {
        "timezone": os.getenv("LEARNER_TIMEZONE", "Europe/Istanbul"),
        "inactivity_timeout_minutes": int(os.getenv("SESSION_INACTIVITY_MINUTES", "120")),
    }


class DevelopmentConfig(Config):
    """Development environment configuration"""

    DEBUG = True


class ProductionConfig(Config):
    """Production environment configuration"""

    DEBUG = False

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 20,
        "max_overflow": 10,
        "pool_recycle": 3600,
        "pool_pre_ping": True,
    }


class TestingConfig(Config):
    """Testing environment configuration"""

    TESTING = True
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    TRAINING_SETTINGS = {
        "timezone": "Europe/Istanbul",
        "inactivity_timeout_minutes": 120,
    }


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
