DEFAULT_MAX_CONCURRENCY = 1
DEFAULT_POLL_INTERVAL = 0.02  # seconds
