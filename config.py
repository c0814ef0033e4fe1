import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Configuration settings for the ordering API"""

    # Database settings (optional, the API reports "not configured" without them)
    DATABASE_URL: str = os.getenv("DATABASE_URL")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME")

    # Server
    PORT: int = int(os.getenv("PORT", 8000))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Reverse geocoding
    GEOCODER_URL: str = os.getenv(
        "GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse"
    )
    GEOCODER_LANGUAGE: str = os.getenv("GEOCODER_LANGUAGE", "ar,en")
    GEOCODER_TIMEOUT: float = float(os.getenv("GEOCODER_TIMEOUT", 10))
    GEOCODER_USER_AGENT: str = os.getenv("GEOCODER_USER_AGENT", "food-ordering-api/1.0")

    # Local previously-ordered products cache
    ORDER_HISTORY_PATH: Path = Path(
        os.getenv("ORDER_HISTORY_PATH", str(BASE_DIR / "data" / "previous_orders.json"))
    )

    # Business rules
    DELIVERY_FEE: float = 35.0  # flat, LE
    COUNTRY_CALLING_CODE: str = "20"
    PAYMENT_METHOD: str = "cash"

    # Watch mode ignores readings that improve accuracy by less than this (meters)
    MIN_ACCURACY_IMPROVEMENT: float = float(os.getenv("MIN_ACCURACY_IMPROVEMENT", 1.0))


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=getattr(logging, Config.LOG_LEVEL.upper(), logging.INFO),
        format=log_format,
        handlers=[logging.StreamHandler()]
    )
