"""
Manual sweep runner
Runs the daily jobs once outside the ARQ scheduler: python run_sweeps.py [deals|posts]
"""

import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent))

from app import models  # noqa: F401
from app.database import SessionLocal
from app.services.deal_reminders import run_deal_lifecycle_sweep
from app.services.post_validity import run_post_validity_sweep

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

SWEEPS = {
    "deals": run_deal_lifecycle_sweep,
    "posts": run_post_validity_sweep,
}


def run(names):
    db = SessionLocal()
    try:
        for name in names:
            logger.info(f"🚀 Running {name} sweep...")
            summary = SWEEPS[name](db)
            logger.info(f"✅ {name} sweep finished: {summary}")
    finally:
        db.close()


if __name__ == "__main__":
    selected = sys.argv[1:] or list(SWEEPS)
    unknown = [name for name in selected if name not in SWEEPS]
    if unknown:
        logger.error(f"Unknown sweep(s): {', '.join(unknown)}. Choose from: {', '.join(SWEEPS)}")
        sys.exit(1)

    try:
        run(selected)
    except Exception as e:
        logger.error(f"❌ Sweep run failed: {e}")
        sys.exit(1)
