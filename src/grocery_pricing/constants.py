"""Constants for grocery pricing package."""

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Region kept when reading the government price file
GROCERY_REGION: str = os.getenv("GROCERY_REGION", "Québec")

# Government price statistics (semicolon separated CSV)
GOV_PRICES_CSV: Path = Path(os.getenv("GOV_PRICES_CSV", "data/prixqc/aliment_qc_prix.csv"))

# Reload the government table after this many seconds
GOV_PRICES_TTL_SECONDS: float = float(os.getenv("GOV_PRICES_TTL_SECONDS", "3600"))

# JSON file backing the CLI price cache
PRICE_CACHE_PATH: Path = Path(os.getenv("PRICE_CACHE_PATH", "data/price_cache.json"))

# Deal feed scanning
DEAL_FEED_TIMEOUT: float = float(os.getenv("DEAL_FEED_TIMEOUT", "10.0"))
DEAL_FEED_BATCH_SIZE: int = int(os.getenv("DEAL_FEED_BATCH_SIZE", "3"))
DEAL_FEED_MAX_VENDORS: int = int(os.getenv("DEAL_FEED_MAX_VENDORS", "3"))

# Last resort price when no source knows the ingredient
DEFAULT_PRICE: float = float(os.getenv("DEFAULT_PRICE", "5.00"))
DEFAULT_CATEGORY = "other"

if GOV_PRICES_TTL_SECONDS < 0:
    raise ValueError(f"GOV_PRICES_TTL_SECONDS must be positive, got {GOV_PRICES_TTL_SECONDS}")
if DEAL_FEED_TIMEOUT <= 0:
    raise ValueError(f"DEAL_FEED_TIMEOUT must be positive, got {DEAL_FEED_TIMEOUT}")
if DEAL_FEED_BATCH_SIZE < 1 or DEAL_FEED_MAX_VENDORS < 1:
    raise ValueError(
        f"Deal feed batch size and vendor limit must be at least 1, "
        f"got {DEAL_FEED_BATCH_SIZE} and {DEAL_FEED_MAX_VENDORS}"
    )
if DEFAULT_PRICE <= 0:
    raise ValueError(f"DEFAULT_PRICE must be positive, got {DEFAULT_PRICE}")
