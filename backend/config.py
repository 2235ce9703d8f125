import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    # Round timers (seconds)
    ROUND_DURATION_SEC = int(os.environ.get('ROUND_DURATION_SEC', '30'))
    PREROLL_DURATION_SEC = int(os.environ.get('PREROLL_DURATION_SEC', '3'))
    ROUND_COOLDOWN_SEC = int(os.environ.get('ROUND_COOLDOWN_SEC', '5'))
    EARLY_END_GRACE_SEC = int(os.environ.get('EARLY_END_GRACE_SEC', '1'))
    # Hints reveal while remaining <= window and remaining % interval == 0
    HINT_WINDOW_SEC = int(os.environ.get('HINT_WINDOW_SEC', '20'))
    HINT_INTERVAL_SEC = int(os.environ.get('HINT_INTERVAL_SEC', '5'))
    # Scoring
    BASE_POINTS = int(os.environ.get('BASE_POINTS', '30'))
    FLOOR_POINTS = int(os.environ.get('FLOOR_POINTS', '5'))
    DJ_BONUS_POINTS = int(os.environ.get('DJ_BONUS_POINTS', '3'))
    # Typo tolerance: allowed = max(TYPO_FLOOR, floor(len(title) * TYPO_TOLERANCE))
    TYPO_FLOOR = int(os.environ.get('TYPO_FLOOR', '2'))
    TYPO_TOLERANCE = float(os.environ.get('TYPO_TOLERANCE', '0.3'))
    ACCEPT_ARTIST_GUESS = _env_bool('ACCEPT_ARTIST_GUESS', False)
    # Lobby rules
    LOCK_LOBBY = _env_bool('LOCK_LOBBY', True)
    MAX_NAME_LENGTH = int(os.environ.get('MAX_NAME_LENGTH', '20'))
    MAX_GUESS_LENGTH = int(os.environ.get('MAX_GUESS_LENGTH', '200'))
    # Privately tell non-hosts their host-only action was ignored
    REPORT_UNAUTHORIZED = _env_bool('REPORT_UNAUTHORIZED', False)
    # Song catalog (iTunes search API)
    CATALOG_URL = os.environ.get('CATALOG_URL', 'https://itunes.apple.com/search')
    CATALOG_LIMIT = int(os.environ.get('CATALOG_LIMIT', '5'))
    CATALOG_TIMEOUT_SEC = float(os.environ.get('CATALOG_TIMEOUT_SEC', '5'))
    CATALOG_COUNTRY = os.environ.get('CATALOG_COUNTRY', 'US')
