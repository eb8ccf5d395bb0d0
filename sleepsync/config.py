import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DATA_FILE = PROJECT_ROOT / "data" / "sleep_logs.json"

# Seed a week of demo logs when the data file does not exist yet
SEED_SAMPLE_DATA = os.getenv("SLEEPSYNC_SEED_SAMPLE_DATA", "false").lower() in ("1", "true", "yes")
