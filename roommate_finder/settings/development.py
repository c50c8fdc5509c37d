from .base import *

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

# Database for development
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
        # Seconds sqlite waits on a locked database before OperationalError
        'OPTIONS': {'timeout': MATCHING['STORE_TIMEOUT']},
    }
}

# Allow all hosts in development
ALLOWED_HOSTS = ['*']

LOG_LEVEL = 'DEBUG'
LOGGING['loggers']['roommate_matching']['level'] = LOG_LEVEL
LOGGING['loggers']['messaging']['level'] = LOG_LEVEL
