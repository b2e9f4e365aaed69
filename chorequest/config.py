"""Flask configuration for ChoreQuest."""

import os
from pathlib import Path


def _parse_milestones(value: str) -> dict:
    """Parse "3:5,5:10" into {3: 5, 5: 10} (streak length -> bonus stars)."""
    milestones = {}
    for pair in value.split(','):
        if pair.strip():
            length, stars = pair.split(':')
            milestones[int(length)] = int(stars)
    return milestones


class Config:
    """Base configuration."""

    # Flask settings
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-secret-key-change-in-production'

    # Database settings
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'chorequest.db'}"
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # APScheduler settings
    SCHEDULER_ENABLED = os.environ.get('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or os.environ.get('TZ', 'Europe/London')
    GENERATION_HOUR = int(os.environ.get('GENERATION_HOUR', '5'))
    LEDGER_AUDIT_HOUR = int(os.environ.get('LEDGER_AUDIT_HOUR', '2'))

    # Notification collaborator
    NOTIFY_WEBHOOK_URL = os.environ.get('NOTIFY_WEBHOOK_URL')
    # Example: https://notify.internal/hooks/chorequest

    # Engine settings
    RIVALRY_BONUS_STARS = int(os.environ.get('RIVALRY_BONUS_STARS', '1'))
    STREAK_MILESTONES = _parse_milestones(os.environ.get('STREAK_MILESTONES', '3:5,5:10,7:20,14:50,30:100'))
    MISS_LOOKBACK_DAYS = int(os.environ.get('MISS_LOOKBACK_DAYS', '30'))
    GENERATION_LOCK_TIMEOUT_MINUTES = int(os.environ.get('GENERATION_LOCK_TIMEOUT_MINUTES', '30'))

    # Application settings
    DEBUG = os.environ.get('DEBUG', 'false').lower() == 'true'
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    DATA_DIR = Path(__file__).parent / 'data'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'chorequest.db'}"


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    # Re-evaluate DATA_DIR and database URI to ensure environment variable is picked up
    DATA_DIR = Path(os.environ.get('DATA_DIR', '/data'))
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or f"sqlite:///{DATA_DIR / 'chorequest.db'}"


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    # Disable scheduler during tests
    SCHEDULER_ENABLED = False
    NOTIFY_WEBHOOK_URL = None


# Config dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
