"""
Application configuration and constants for Communibus API Server.

This module centralizes environment-based configuration, mutex timings,
matching and invitation limits, and the default cooperative cost model.

Configuration values can be overridden via environment variables.
"""

from os import environ


# ---------------------------------------------------------------------------
# Application metadata
# ---------------------------------------------------------------------------
API_TITLE = "Communibus API Server"
API_VERSION = "1.0.0"


# ---------------------------------------------------------------------------
# PostgreSQL configuration
# ---------------------------------------------------------------------------
PSQL_DB_DRIVER = environ.get("PSQL_DB_DRIVER", "postgresql")
PSQL_DB_USERNAME = environ.get("PSQL_DB_USERNAME", "postgres")
PSQL_DB_PORT = environ.get("PSQL_DB_PORT", "5432")
PSQL_DB_PASSWORD = environ.get("PSQL_DB_PASSWORD", "password")
PSQL_DB_HOST = environ.get("PSQL_DB_HOST", "localhost")
PSQL_DB_NAME = environ.get("PSQL_DB_NAME", "postgres")


# ---------------------------------------------------------------------------
# OpenObserve configuration
# ---------------------------------------------------------------------------
OPENOBSERVE_PROTOCOL = environ.get("OPENOBSERVE_PROTOCOL", "http")
OPENOBSERVE_HOST = environ.get("OPENOBSERVE_HOST", "localhost")
OPENOBSERVE_PORT = environ.get("OPENOBSERVE_PORT", "5080")
OPENOBSERVE_USERNAME = environ.get("OPENOBSERVE_USERNAME", "admin@communibus.com")
OPENOBSERVE_PASSWORD = environ.get("OPENOBSERVE_PASSWORD", "password")
OPENOBSERVE_ORG = environ.get("OPENOBSERVE_ORG", "communibus")
OPENOBSERVE_STREAM = environ.get("OPENOBSERVE_STREAM", "communibus-core-server")


# ---------------------------------------------------------------------------
# Redis configuration
# ---------------------------------------------------------------------------
REDIS_HOST = environ.get("REDIS_HOST", "localhost")
REDIS_PORT = environ.get("REDIS_PORT", "6379")
REDIS_PASSWORD = environ.get("REDIS_PASSWORD", "password")


# ---------------------------------------------------------------------------
# Redis mutex lock constants
# ---------------------------------------------------------------------------
MUTEX_LOCK_TIMEOUT = 10  # Lock timeout (in seconds)
MUTEX_LOCK_MAX_WAIT_TIME = 60  # Max blocking wait time (in seconds)


# ---------------------------------------------------------------------------
# Route proposal constants
# ---------------------------------------------------------------------------
DEFAULT_MINIMUM_PASSENGERS = 8  # Pledges needed to reach the threshold
DEFAULT_TARGET_PASSENGERS = 16  # Seats the proposal is priced for
FARE_PREVIEW_DEPTH = 5  # Additional pledges shown in the fare preview


# ---------------------------------------------------------------------------
# Matching & invitation constants
# ---------------------------------------------------------------------------
MATCH_SCORE_THRESHOLD = 50  # Minimum score for sending an invitation
INVITATION_WORKERS = int(environ.get("INVITATION_WORKERS", "2"))
INVITATION_QUEUE_LIMIT = int(environ.get("INVITATION_QUEUE_LIMIT", "32"))


# ---------------------------------------------------------------------------
# Cooperative fare constants (defaults for companies without a fare policy)
# ---------------------------------------------------------------------------
DEFAULT_DRIVER_HOURLY_RATE = 12.21  # Per hour
DEFAULT_FUEL_COST_PER_MILE = 0.15
DEFAULT_DEPRECIATION_PER_JOURNEY = 5.00
DEFAULT_INSURANCE_PER_JOURNEY = 3.75
DEFAULT_MAINTENANCE_PER_JOURNEY = 2.50
DEFAULT_ADMIN_OVERHEAD_PERCENTAGE = 0.10  # Fraction of the journey subtotal
DEFAULT_VIABILITY_SHORTFALL = 3  # Missing pledges still worth waiting for
DEFAULT_DISTANCE_MILES = 8.0  # Used when a proposal carries no estimate
DEFAULT_DURATION_MINUTES = 35  # Used when a proposal carries no estimate

