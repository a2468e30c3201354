import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL")

# 64 hex characters (32 bytes); only the wire bridge and credential storage need it
TOKEN_ENCRYPTION_KEY = os.getenv("TOKEN_ENCRYPTION_KEY")

BOAT_API_BASE_URL = os.getenv("BOAT_API_BASE_URL", "https://unbelievaboat.com/api/v1")
BOAT_RATE_LIMIT = int(os.getenv("BOAT_RATE_LIMIT", "20"))
BOAT_RATE_WINDOW = float(os.getenv("BOAT_RATE_WINDOW", "1.0"))

COMMAND_COOLDOWN_SECONDS = float(os.getenv("COMMAND_COOLDOWN_SECONDS", "5"))
GLOBAL_RATE_LIMIT = int(os.getenv("GLOBAL_RATE_LIMIT", "50"))
GLOBAL_RATE_WINDOW = float(os.getenv("GLOBAL_RATE_WINDOW", "1.0"))

LOG_FILE = os.getenv("LOG_FILE", "ledger_errors.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
