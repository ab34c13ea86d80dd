import os
from pathlib import Path

# ─── Root Directory ──────────────────────────────────────────────
GLOBAL_ROOT = Path(os.getcwd()).resolve()

# ─── Config and Log Paths ────────────────────────────────────────
GLOBAL_CFG_FILE = GLOBAL_ROOT / "kvsample_settings.toml"
GLOBAL_LOG_DIR = GLOBAL_ROOT / "logs"

# ─── Environment Paths ───────────────────────────────────────────
ENV = GLOBAL_ROOT / ".env"

# ─── Environment Variable Names ──────────────────────────────────
# service principal details for running the workflow
CLIENT_ID = "CLIENT_ID"
DOMAIN = "DOMAIN"
APPLICATION_SECRET = "APPLICATION_SECRET"
AZURE_SUBSCRIPTION_ID = "AZURE_SUBSCRIPTION_ID"
OBJECT_ID = "OBJECT_ID"

# service principal that is granted access to the vault afterwards
OBJECT_ID_KEYVAULT_OPERATIONS = "OBJECT_ID_KEYVAULT_OPERATIONS"
SP_KEYVAULT_OPERATIONS = "SP_KEYVAULT_OPERATIONS"

REQUIRED_ENV = [CLIENT_ID, DOMAIN, APPLICATION_SECRET, AZURE_SUBSCRIPTION_ID]

# ─── Workflow Defaults ───────────────────────────────────────────
DEFAULT_LOCATION = "westus"
DEFAULT_SETTLE_DELAY_MS = 5000
DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_LOG_LEVEL = "INFO"

SETTINGS_DEFAULT = {
    "workflow": {
        "location": DEFAULT_LOCATION,
        "settle_delay_ms": DEFAULT_SETTLE_DELAY_MS,
        "authority_host": DEFAULT_AUTHORITY_HOST,
    },
    "logging": {
        "level": DEFAULT_LOG_LEVEL,
        "dir": str(GLOBAL_LOG_DIR),
    },
}
