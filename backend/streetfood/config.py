"""Runtime settings for the street food sync engine."""

import os

from dotenv import load_dotenv

load_dotenv()

# Supabase
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY") or os.getenv("SUPABASE_ANON_KEY")
SUPABASE_EMAIL = os.getenv("SUPABASE_EMAIL")
SUPABASE_PASSWORD = os.getenv("SUPABASE_PASSWORD")

LOCATIONS_TABLE = os.getenv("LOCATIONS_TABLE", "locations")
RATINGS_TABLE = os.getenv("RATINGS_TABLE", "ratings")
PHOTO_BUCKET = os.getenv("PHOTO_BUCKET", "food-photos")
REALTIME_CHANNEL = os.getenv("REALTIME_CHANNEL", "ratings-changes")

# Sync behaviour
RELOAD_AFTER_SUBMIT = os.getenv("RELOAD_AFTER_SUBMIT", "true").lower() == "true"
RESUBSCRIBE_DELAY_SECONDS = float(os.getenv("RESUBSCRIBE_DELAY_SECONDS", "5"))
USE_MOCK_DATA = os.getenv("USE_MOCK_DATA", "false").lower() == "true"

# Location identity
UNKNOWN_NAME = "Unknown"
COORDINATE_PRECISION = 4  # ~11 m at the equator
MATCH_TOLERANCE_DEGREES = 0.0001
DUPLICATE_WINDOW_SECONDS = 60
NEARBY_RADIUS_METERS = 50

# Ratings
MIN_SCORE = 1
MAX_SCORE = 5

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
