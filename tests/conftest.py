import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("CATALOG_GATEWAY_DB_URL", "sqlite:///./test_catalog_gateway.db")
os.environ.setdefault("CATALOG_GATEWAY_API_KEYS", "test_api_key,second_key")
os.environ.setdefault("SHOPIFY_ADMIN_API_VERSION", "2025-01")
os.environ.setdefault("SHOPIFY_REQUEST_TIMEOUT_SECONDS", "5")
