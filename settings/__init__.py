"""Application settings."""

import os
from pathlib import Path

# Database
DB_PATH = os.getenv("CUBE_DB_PATH", "cube_cache.duckdb")

# Logging
LOG_DIR = Path(os.getenv("CUBE_LOG_DIR", "logs"))
LOG_LEVEL = os.getenv("CUBE_LOG_LEVEL", "INFO")

# Function registry
FUNCTIONS_CONFIG = os.getenv("CUBE_FUNCTIONS_CONFIG", "CubeConnectorConfig.json")
MAX_PARAMETERS = 15

# API
API_BASE_URL = os.getenv("CUBE_API_BASE_URL", "https://api.powerbi.com/v1.0/myorg")
API_TIMEOUT = int(os.getenv("CUBE_API_TIMEOUT", "120"))
ACCESS_TOKEN = os.getenv("CUBE_ACCESS_TOKEN", "")

# Refresh
MAX_QUERY_LENGTH = int(os.getenv("CUBE_MAX_QUERY_LENGTH", "30000"))
MIN_POOL_SIZE = int(os.getenv("CUBE_MIN_POOL_SIZE", "3"))
YEAR_RANGE = (1900, 2150)
