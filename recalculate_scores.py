#!/usr/bin/env python3
"""
Script to recalculate AI Trade Scores for every professional,
and optionally re-run the complexity analysis of stored projects
"""

import argparse
import logging
import sys

from app import create_app, db
from models import Professional, Project
from services.scoring.errors import ScoringError
from services.scoring.scoring_service import get_scoring_service

logger = logging.getLogger(__name__)


def recalculate_scores(batch_size=None, reanalyze_projects=False, status=None):
    """Rescore professionals in batches; returns (rescored, failed, analysed)"""
    service = get_scoring_service()

    professionals = Professional.query.order_by(Professional.id).all()
    logger.info(f"Found {len(professionals)} professionals to rescore")
    processed, failed = service.batch_rescore(professionals, batch_size=batch_size)

    analysed = 0
    if reanalyze_projects:
        query = Project.query
        if status:
            query = query.filter(Project.status == status)

        for project in query.order_by(Project.id).all():
            try:
                service.analyze_project(project.id, commit=False)
                analysed += 1
            except ScoringError as e:
                logger.error(f"Failed to analyse project {project.id}: {str(e)}")
                failed += 1
        db.session.commit()
        logger.info(f"Re-analysed {analysed} projects")

    return processed, failed, analysed


def main(argv=None):
    parser = argparse.ArgumentParser(description="Recalculate AI Trade Scores")
    parser.add_argument('--batch-size', type=int, default=None,
                        help="Professionals per commit (default: RESCORE_BATCH_SIZE)")
    parser.add_argument('--projects', action='store_true',
                        help="Also re-run the complexity analysis of stored projects")
    parser.add_argument('--status', default=None,
                        help="Only re-analyse projects with this status")
    args = parser.parse_args(argv)

    app = create_app()
    with app.app_context():
        processed, failed, analysed = recalculate_scores(
            batch_size=args.batch_size,
            reanalyze_projects=args.projects,
            status=args.status
        )

    print(f"Rescored {processed} professionals, analysed {analysed} projects, {failed} failures")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
