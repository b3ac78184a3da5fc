"""
Constants and default configuration for Buildcast.
"""

CONFIG_FILES = [
    '.buildcast.yaml',
    '.buildcast.yml',
    '.buildcast.toml',
    '.buildcast.json',
]

CACHE_KEY_PREFIX = "forecast:"

# Saturday and Sunday, as returned by date.weekday()
WEEKEND_DAYS = (5, 6)

DEFAULT_CONFIG = {
    'forecast': {
        'cache_ttl': 3600,
        'history_window': 10,
        'min_history': 5,
        'single_flight': True,
    },
    'calendar': {
        'default_region': None,
        'window_buffer': 1.4,
        'max_range_days': 3660,
    },
    'cache': {
        'backend': 'memory',
        'max_size': 1000,
        'persist': False,
        'cache_dir': None,
    },
    'storage': {
        'db_path': None,
    },
    'server': {
        'host': '127.0.0.1',
        'port': 5000,
    },
    'logging': {
        'level': 'INFO',
        'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        'file': None,
    },
}
