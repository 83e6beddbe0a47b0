"""Internal constants shared across the library."""

USER_AGENT = "pycapmetro/1.0"
STORE_URL = "sqlite:///capmetro.db"
ROUTES: tuple[str, ...] = ("803", "801", "550")

#: Maximum distance (metres) between a position and its nearest stop.
MAX_DISTANCE = 100.0
#: Consecutive empty polls per route before the fleet is considered asleep.
MAX_RETRIES = 3
#: Retry counter seed; see :class:`pycapmetro.state.backoff.EmptyResponseTracker`.
INITIAL_RETRIES = 1

NORMAL_SLEEP = 30.0
EXTENDED_SLEEP = 10 * 60.0
VEHICLE_CHECK_INTERVAL = 4 * 3600.0
REQUEST_TIMEOUT = 10.0

EARTH_RADIUS_M = 6_371_008.8
