import os
from dotenv import load_dotenv
import logging

load_dotenv()

LOG_LEVEL_FROM_ENV = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, LOG_LEVEL_FROM_ENV, logging.INFO)

logging.basicConfig(
    level=numeric_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def _optional_int(name: str):
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"{name}={raw!r} is not an integer. Ignoring it.")
        return None


# --- Key Settings ---
KEYS_FILE = os.getenv("KEYS_FILE", "local_identity_keys.json")
RSA_KEY_BITS = int(os.getenv("RSA_KEY_BITS", "2048"))

# --- Content Store Settings ---
CONTENT_STORE = os.getenv("CONTENT_STORE", "memory").lower() # "memory" or "pinata"
PINATA_JWT = os.getenv("PINATA_JWT")
PINATA_API_URL = os.getenv("PINATA_API_URL", "https://api.pinata.cloud/pinning/pinFileToIPFS")
IPFS_GATEWAY_URL = os.getenv("IPFS_GATEWAY_URL", "https://gateway.pinata.cloud/ipfs/")
IPFS_FALLBACK_GATEWAY_URL = os.getenv("IPFS_FALLBACK_GATEWAY_URL", "https://ipfs.io/ipfs/")
IPFS_TIMEOUT_SECONDS = float(os.getenv("IPFS_TIMEOUT_SECONDS", "30"))

# --- Ledger Settings ---
LEDGER_DB_PATH = os.getenv("LEDGER_DB_PATH", "./message_ledger.db")

# --- Binding Verification Settings ---
# Empty disables the age check; inbox messages stay verifiable indefinitely.
BINDING_MAX_AGE_SECONDS = _optional_int("BINDING_MAX_AGE_SECONDS")
BINDING_MAX_FUTURE_SKEW_SECONDS = int(os.getenv("BINDING_MAX_FUTURE_SKEW_SECONDS", "300"))

# --- Server Settings ---
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))
CORS_ALLOWED_ORIGINS = os.getenv("CORS_ALLOWED_ORIGINS", "http://localhost:3000").split(",")


# --- Basic Validation ---
if CONTENT_STORE not in ("memory", "pinata"):
    logger.warning(f"Unknown CONTENT_STORE '{CONTENT_STORE}'. Expected 'memory' or 'pinata'.")
if CONTENT_STORE == "pinata" and not PINATA_JWT:
    logger.warning("CONTENT_STORE is 'pinata' but PINATA_JWT is not set. Uploads will fail.")
if RSA_KEY_BITS < 2048:
    logger.warning(f"RSA_KEY_BITS={RSA_KEY_BITS} is below 2048. Generated recipient keys will be weak.")
if HOST not in ("127.0.0.1", "localhost"):
    logger.warning(f"Server bound to {HOST}. Private keys submitted to the API will cross the network.")
