"""
Client Configuration
JSON-based settings with secrets taken from the environment
"""

import json
import os
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_CONFIG_PATH = "solifin.json"


class Config:
    """
    Configuration manager for the SOLIFIN wallet client
    Loads non-secret tuning from a JSON file, secrets from the environment
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or os.getenv("SOLIFIN_CONFIG", DEFAULT_CONFIG_PATH))
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self):
        """Load configuration from JSON file (missing file means defaults)"""
        if not self.config_path.exists():
            self._config = {}
            return

        try:
            with open(self.config_path, 'r') as f:
                self._config = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file: {e}")

    def reload(self):
        """Reload configuration from file"""
        self.load()

    def validate(self):
        """Validate required configuration"""
        required_env = ["SOLIFIN_API_BASE_URL", "SOLIFIN_API_TOKEN"]
        missing = [var for var in required_env if not os.getenv(var)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        if self.max_retries < 1:
            raise ValueError("http.max_retries must be at least 1")

    def _section(self, name: str) -> Dict[str, Any]:
        return self._config.get(name, {}) or {}

    # ============================================================================
    # ENVIRONMENT VARIABLES (Sensitive Data)
    # ============================================================================

    @property
    def API_BASE_URL(self) -> str:
        """API base URL from environment"""
        return os.getenv("SOLIFIN_API_BASE_URL", "http://localhost:8000")

    @property
    def API_TOKEN(self) -> str:
        """Bearer token (Sanctum personal access token) from environment"""
        return os.getenv("SOLIFIN_API_TOKEN", "")

    @property
    def LOG_LEVEL(self) -> str:
        """Logging level from environment"""
        return os.getenv("LOG_LEVEL", "INFO").upper()

    @property
    def DEBUG(self) -> bool:
        """Debug mode from environment"""
        return os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")

    # ============================================================================
    # HTTP
    # ============================================================================

    @property
    def timeout_seconds(self) -> float:
        """Total timeout of a single request"""
        return float(self._section("http").get("timeout_seconds", 30))

    @property
    def max_retries(self) -> int:
        """Attempts for GET and idempotent requests"""
        return int(self._section("http").get("max_retries", 3))

    # ============================================================================
    # FEES & WALLET
    # ============================================================================

    @property
    def fee_reference_amount(self) -> int:
        """Nominal amount sent to the fee endpoints to read a percentage"""
        return int(self._section("fees").get("reference_amount", 100))

    @property
    def fee_fail_open(self) -> bool:
        """Fall back to a zero fee schedule when fees cannot be fetched"""
        return bool(self._section("fees").get("fail_open", False))

    @property
    def revalidate_on_submit(self) -> bool:
        """Fetch a fresh balance right before submitting"""
        return bool(self._section("wallet").get("revalidate_on_submit", True))

    # ============================================================================
    # PAGINATION
    # ============================================================================

    @property
    def per_page(self) -> int:
        """Default page size for listings"""
        return int(self._section("pagination").get("per_page", 10))


# Global config instance
config = Config()
