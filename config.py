import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Application environment
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
DEBUG = ENVIRONMENT == "development"

# Database settings
DATABASE_URL = os.getenv("DATABASE_URL")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Application settings
APP_NAME = "AprovaFacil Cache API"
APP_VERSION = "1.0.0"

# Cache settings
CACHE_PROVIDER = os.getenv("CACHE_PROVIDER", "memory").lower()  # 'memory', 'redis', 'none'
CACHE_DEFAULT_TTL = int(os.getenv("CACHE_DEFAULT_TTL", "30"))  # minutes
CACHE_MAX_KEYS = int(os.getenv("CACHE_MAX_KEYS", "10000"))
CACHE_SWEEP_INTERVAL_SECONDS = int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "300"))  # memory tier sweep
CACHE_PURGE_INTERVAL_SECONDS = int(os.getenv("CACHE_PURGE_INTERVAL_SECONDS", "1800"))  # persistent tier purge
CACHE_COALESCE_COMPUTE = os.getenv("CACHE_COALESCE_COMPUTE", "false").lower() == "true"
CACHE_ADMIN_SECRET = os.getenv("CACHE_ADMIN_SECRET", "")

# Redis settings
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
REDIS_KEY_PREFIX = os.getenv("REDIS_KEY_PREFIX", "aprovafacil:")
