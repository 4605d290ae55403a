from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

SCHEMA_VERSION = 1

# Undo history per match (oldest snapshot dropped beyond this)
UNDO_LIMIT = 100

# Rule clamps
HARD_MAX_POINTS = 999
HARD_MAX_SETS = 9
HARD_MAX_PERIODS = 12
HARD_MAX_PERIOD_SECONDS = 4 * 60 * 60
MIN_PERIOD_SECONDS = 30
DEFAULT_OVERTIME_SECONDS = 5 * 60
FALLBACK_OVERTIME_SECONDS = 60

PALETTE_SIZE = 12
DEFAULT_BADGE = "sf:shield.fill"

LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
