"""
Monthly fee generation job.

Intended to be run by cron early on the 1st of every month:

    0 2 1 * *  python -m school_admin.tasks.monthly_fee_generation

Every active school with a current academic year gets this month's
monthly fees generated. A school that fails is logged and skipped.
"""

import argparse
from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from school_admin.core.logging import get_logger
from school_admin.repositories.school.school_repository import AcademicYearRepository, SchoolRepository
from school_admin.services.fee.fee_generation_service import FeeGenerationService

logger = get_logger(__name__)


def run_monthly_fee_generation(db: Session, run_date: Optional[date] = None) -> Dict[int, Dict[str, Any]]:
    """
    Generate monthly fees for every active school.

    Returns:
        Outcome per school id: the history id and counts, a skip reason,
        or the error message.
    """
    run_date = run_date or date.today()
    schools = SchoolRepository(db).find_active()
    years = AcademicYearRepository(db)
    service = FeeGenerationService(db)
    outcomes: Dict[int, Dict[str, Any]] = {}

    logger.info(f"Starting monthly fee generation for {len(schools)} schools", extra={"run_date": run_date.isoformat()})

    for school in schools:
        year = years.find_current(school.id)
        if year is None:
            logger.warning(f"No current academic year found for school {school.id}")
            outcomes[school.id] = {"skipped": "No current academic year"}
            continue

        result = service.generate_monthly_fees(school.id, year.id, run_date=run_date)
        if result.is_success:
            summary = result.data
            outcomes[school.id] = {
                "history_id": summary.history_id,
                "fees_generated": summary.fees_generated,
                "fees_failed": summary.fees_failed,
            }
            logger.info(
                f"Generated monthly fees for school {school.id}",
                extra={"academic_year_id": year.id, **outcomes[school.id]},
            )
        else:
            outcomes[school.id] = {"error": result.message}
            logger.error(
                f"Error generating monthly fees for school {school.id}: {result.message}",
                extra={"academic_year_id": year.id},
            )

    logger.info("Monthly fee generation completed", extra={"schools": len(schools)})
    return outcomes


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate this month's fees for every active school")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Run as if on this date (YYYY-MM-DD); defaults to today",
    )
    args = parser.parse_args(argv)

    from school_admin.db.session import SessionLocal

    db = SessionLocal()
    try:
        outcomes = run_monthly_fee_generation(db, run_date=args.date)
    finally:
        db.close()
    return 1 if any("error" in outcome for outcome in outcomes.values()) else 0


if __name__ == "__main__":
    raise SystemExit(main())
