import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///pongrelay.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    PORT = int(os.environ.get('PORT', '3000'))
    # Comma separated list, '*' allows any origin
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    RELAY_NAMESPACE = os.environ.get('RELAY_NAMESPACE', '/')
    # Relay-side scoring authority, independent of the client's own max score
    RELAY_MAX_SCORE = int(os.environ.get('RELAY_MAX_SCORE', '11'))
    ROOM_CODE_LENGTH = int(os.environ.get('ROOM_CODE_LENGTH', '6'))
    # Cleanup sweeper (seconds)
    CLEANUP_INTERVAL_SEC = int(os.environ.get('CLEANUP_INTERVAL_SEC', '60'))
    ROOM_TIMEOUT_SEC = int(os.environ.get('ROOM_TIMEOUT_SEC', '1800'))
    PLAYER_TIMEOUT_SEC = int(os.environ.get('PLAYER_TIMEOUT_SEC', '300'))
    ENABLE_SWEEPER = os.environ.get('ENABLE_SWEEPER', '1') not in ('0', 'false', 'no')
    # Per client address, applied to every /api route
    API_RATE_LIMIT = os.environ.get('API_RATE_LIMIT', '100 per 15 minutes')
    RATELIMIT_STORAGE_URI = os.environ.get('RATELIMIT_STORAGE_URI', 'memory://')
