"""Script to seed the Free / Basic / Pro subscription plans."""

import logging

from documind.core.config import settings
from documind.core.logging_config import configure_logging
from documind.db.base import SessionLocal
from documind.services.plans import seed_default_plans

logger = logging.getLogger("seed_plans")


def seed_plans() -> int:
    """Insert missing default plans. Returns the number created."""
    db = SessionLocal()
    try:
        created = seed_default_plans(db)
        if created:
            for plan in created:
                logger.info("Created plan: %s", plan.name)
        else:
            logger.info("All default plans already exist. Skipping seed.")
        return len(created)
    except Exception:
        db.rollback()
        logger.exception("Error seeding plans")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL)
    seed_plans()
