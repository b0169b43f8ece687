from datetime import timedelta

from django.conf import settings


DEFAULTS = {
    'TOKEN_SECRET': None,  # falls back to SECRET_KEY
    'TOKEN_ALGORITHM': 'HS256',
    'TOKEN_LIFETIME': timedelta(days=7),
    'DATA_TIMEOUT': 5.0,
    'DATA_RETRY_ATTEMPTS': 3,
    'DATA_RETRY_BACKOFF': 0.1,
}


def get_setting(name):
    """Return one value of the HACKERNEWS settings dict, or its default."""
    if name not in DEFAULTS:
        raise KeyError('Unknown HACKERNEWS setting: {}'.format(name))
    value = getattr(settings, 'HACKERNEWS', {}).get(name, DEFAULTS[name])
    if name == 'TOKEN_SECRET' and not value:
        value = settings.SECRET_KEY
    return value
