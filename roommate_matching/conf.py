from django.conf import settings

DEFAULTS = {
    'STORE_TIMEOUT': 10.0,
    'DAILY_SWIPE_LIMIT': 20,
    'ALLOW_DECISION_OVERRIDE': True,
    'FEED_ORDERING': 'compatibility',
    'DEFAULT_ZONE': 'Sevilla',
}


def matching_setting(name):
    """Read a key of the MATCHING settings dict, falling back to the defaults"""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown matching setting: {name}")
    return getattr(settings, 'MATCHING', {}).get(name, DEFAULTS[name])
