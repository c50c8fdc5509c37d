from .base import *

SECRET_KEY = 'test-secret-key'

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

MATCHING = {
    'STORE_TIMEOUT': 10.0,
    'DAILY_SWIPE_LIMIT': 20,
    'ALLOW_DECISION_OVERRIDE': True,
    'FEED_ORDERING': 'compatibility',
    'DEFAULT_ZONE': 'Sevilla',
}

LOGGING['loggers']['roommate_matching']['level'] = 'CRITICAL'
LOGGING['loggers']['messaging']['level'] = 'CRITICAL'
