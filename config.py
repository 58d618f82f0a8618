import os
from datetime import timedelta

DEV_JWT_SECRET = 'taskkeeper-dev-secret-change-in-production'


class Config:

    JWT_SECRET = os.environ.get('JWT_SECRET', DEV_JWT_SECRET)
    TOKEN_LIFETIME = timedelta(days=7)

    # Database configuration
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///taskkeeper.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Salted and slow; werkzeug method string
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256'

    # e.g. "/api" to serve every route under /api
    API_PREFIX = os.environ.get('API_PREFIX', '')

    # Comma-separated list of browser origins allowed to call the API
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get('CORS_ORIGINS', '*').split(',')
        if origin.strip()
    ]

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')


class TestConfig(Config):

    TESTING = True
    JWT_SECRET = 'test-secret'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    PASSWORD_HASH_METHOD = 'pbkdf2:sha256:1000'
    API_PREFIX = ''
