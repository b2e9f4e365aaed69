"""
Daily chore generation job.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def generate_chores(family_id: Optional[int] = None, dry_run: bool = False):
    """
    Run the assignment generation cycle.

    Runs daily at GENERATION_HOUR. Per-family failures are collected in the
    report's errors; anything escaping the cycle itself is logged and re-raised.

    Returns:
        GenerationReport for the run
    """
    logger.info(f"Starting daily chore generation (family={family_id}, dry_run={dry_run})")

    # Import inside function to avoid circular imports and to get app context
    from chorequest.services.generation_service import run_generation_cycle

    try:
        report = run_generation_cycle(family_id=family_id, dry_run=dry_run)

        if report.errors:
            logger.error(f"Chore generation finished with {len(report.errors)} errors: {report.errors}")
        else:
            logger.info(f"Chore generation complete: {report.to_dict()}")

        return report

    except Exception as e:
        logger.error(f"Error in daily chore generation: {e}")
        raise
