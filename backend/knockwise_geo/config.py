"""Configuration for the Knockwise territory geometry core"""
import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# Knockwise backend REST API
BACKEND_API_URL = os.getenv("KNOCKWISE_API_URL", "http://localhost:4000/api")
BACKEND_ACCESS_TOKEN = os.getenv("KNOCKWISE_ACCESS_TOKEN", "")
OVERLAP_CHECK_PATH = os.getenv("OVERLAP_CHECK_PATH", "/zones/check-overlap")
TERRITORY_LIST_PATH = "/zones/list-all"

# GeoNames (free tier: 1000 requests per day)
GEONAMES_BASE_URL = os.getenv("GEONAMES_BASE_URL", "https://secure.geonames.org")
GEONAMES_USERNAME = os.getenv("GEONAMES_USERNAME", "demo")
GEONAMES_COUNTRY = "CA"
GEONAMES_FEATURE_CLASS = "P"  # Populated places
GEONAMES_MAX_ROWS = 10
GEONAMES_PROVINCE_MAX_ROWS = 50

# OpenStreetMap services
OVERPASS_URL = os.getenv("OVERPASS_API_URL", "https://overpass-api.de/api/interpreter")
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org")
# Nominatim usage policy requires an identifying User-Agent
NOMINATIM_USER_AGENT = os.getenv("NOMINATIM_USER_AGENT", "Knockwise/1.0 (contact@knockwise.com)")

# Google Maps Platform (geocoding, places, roads)
GOOGLE_MAPS_API_KEY = os.getenv("GOOGLE_MAPS_API_KEY", "")
GOOGLE_MAPS_BASE_URL = "https://maps.googleapis.com/maps/api"
GOOGLE_ROADS_URL = "https://roads.googleapis.com/v1/nearestRoads"

# API settings
REQUEST_TIMEOUT = 30
OVERPASS_TIMEOUT = 25
MAX_RETRIES = 2
RETRY_DELAY = 1

# Minimum spacing between requests, in seconds
GEONAMES_REQUEST_DELAY = 0.1
OVERPASS_REQUEST_DELAY = 1.0
NOMINATIM_REQUEST_DELAY = 1.0
GOOGLE_REQUEST_DELAY = 0.1

# Location search cache
LOCATION_CACHE_TTL = int(os.getenv("LOCATION_CACHE_TTL", "300"))  # 5 minutes

# Block building estimation
SQ_METERS_PER_BUILDING = 150  # Average residential lot
PLACEHOLDER_HOUSE_NUMBER_START = 65
GEOCODE_MATCH_RADIUS_M = 50

# Territory-wide building detection
SQ_METERS_PER_DETECTED_BUILDING = 400
MIN_TERRITORY_BUILDINGS = 3

if not GOOGLE_MAPS_API_KEY:
    logger.warning("GOOGLE_MAPS_API_KEY is not configured; Google geocoding requests will fail.")
if not BACKEND_ACCESS_TOKEN:
    logger.warning("KNOCKWISE_ACCESS_TOKEN is not set; backend requests are sent without Authorization.")
