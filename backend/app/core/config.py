import os
from dotenv import load_dotenv

# Load .env from the backend directory
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "..", ".env"))


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

# Database: stored in backend/data/
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
BACKEND_DIR = os.path.abspath(os.path.join(BASE_DIR, "..", ".."))

DATABASE_PATH: str = os.getenv(
    "DATABASE_PATH",
    os.path.join(BACKEND_DIR, "data", "app.db"),
)

# Ledger connection
LEDGER_BACKEND: str = os.getenv("LEDGER_BACKEND", "web3")  # web3 | memory
LEDGER_RPC_URL: str = os.getenv("LEDGER_RPC_URL", "http://127.0.0.1:7545")
CONTRACT_ADDRESS: str = os.getenv("CONTRACT_ADDRESS", "")
CONTRACT_ABI_PATH: str = os.getenv(
    "CONTRACT_ABI_PATH",
    os.path.join(BACKEND_DIR, "app", "ledger", "abi", "feedback_abi.json"),
)

# Private keys imported into the signing wallet at startup (comma separated)
LEDGER_PRIVATE_KEYS: list[str] = _env_list("LEDGER_PRIVATE_KEYS")

# Unlocked accounts of the in-memory ledger (first one deploys and is admin)
LEDGER_MEMORY_ACCOUNTS: list[str] = _env_list(
    "LEDGER_MEMORY_ACCOUNTS",
    "0x1000000000000000000000000000000000000001",
)

LEDGER_REQUEST_TIMEOUT: float = float(os.getenv("LEDGER_REQUEST_TIMEOUT", "10"))
LEDGER_CONFIRMATION_TIMEOUT: float = float(os.getenv("LEDGER_CONFIRMATION_TIMEOUT", "60"))
LEDGER_POLL_INTERVAL: float = float(os.getenv("LEDGER_POLL_INTERVAL", "0.5"))
LEDGER_NONCE_RETRIES: int = int(os.getenv("LEDGER_NONCE_RETRIES", "3"))
LEDGER_CALL_RETRIES: int = int(os.getenv("LEDGER_CALL_RETRIES", "2"))
LEDGER_DEFAULT_GAS: int = int(os.getenv("LEDGER_DEFAULT_GAS", "300000"))

# Index probing for ledger lists that have no enumeration method
LEDGER_PROBE_LIMIT: int = int(os.getenv("LEDGER_PROBE_LIMIT", "1000"))
LEDGER_PROBE_MAX_GAP: int = int(os.getenv("LEDGER_PROBE_MAX_GAP", "3"))
LEDGER_NATIVE_ENUMERATION: bool = _env_bool("LEDGER_NATIVE_ENUMERATION", True)

# Admin identity
ADMIN_ADDRESS: str = os.getenv("ADMIN_ADDRESS", "")
ADMIN_RESOLUTION_ORDER: list[str] = _env_list("ADMIN_RESOLUTION_ORDER", "env,store,wallet,node")
ADMIN_SYNC_ON_STARTUP: bool = _env_bool("ADMIN_SYNC_ON_STARTUP", False)

# Feedback
FEEDBACK_SPONSORSHIP_ENABLED: bool = _env_bool("FEEDBACK_SPONSORSHIP_ENABLED", False)
STAGING_TTL_SECONDS: int = int(os.getenv("STAGING_TTL_SECONDS", "86400"))  # 24h
STAGING_MAX_RECORDS: int = int(os.getenv("STAGING_MAX_RECORDS", "10000"))
