#!/usr/bin/env python3
"""Seed demo data: one department, the built-in templates, and a handful of
reports spread across auto-submitted and review-bound accuracy scores.

Field extraction is replaced by a fixed extractor that reports every field
present, so no model server is needed.

Usage:
    python scripts/seed_demo.py          # uses DATABASE_URL from env / .env
    DATABASE_URL=... python scripts/seed_demo.py
"""
from __future__ import annotations

import sys

from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Ensure project root is on sys.path
sys.path.insert(0, ".")

from app.core.settings import get_settings
from app.db.base import Base
from app.db.repositories import OrganizationRepository
from app.llm.extractor import ExtractionResult
from app.notification.notifier import RecordingNotifier
from app.pipeline.service import ReportPipelineService
from app.templates.registry import TemplateRegistry
from app.templates.store import sync_builtin_templates


class AllPresentExtractor:
    def extract(self, narrative, fields, *, report_id=None):
        return ExtractionResult(
            present_fields=[f.key for f in fields],
            missing_fields=[],
            confidence_score=1.0,
        )


DEMO_REPORTS = [
    # (report_type, accuracy_score, narrative)
    ("incident", 92.0, "At 1430 hours I was dispatched to 100 Main Street in reference to a theft."),
    ("incident", 55.0, "Victim reported her bicycle stolen from the rack outside the library."),
    ("arrest", 64.0, "I observed the suspect leave the store without paying and detained him."),
    ("accident", 78.0, "Two vehicles collided at the intersection; one driver complained of neck pain."),
    ("witness", 88.0, "The witness stated she saw a red sedan run the light at about 5pm."),
]


def seed(session: Session) -> None:
    """Insert a demo department and route the demo reports."""
    sync_builtin_templates(session, TemplateRegistry.default())
    org = OrganizationRepository(session).create(name="Demo Police Department")

    notifier = RecordingNotifier()
    service = ReportPipelineService(session, extractor=AllPresentExtractor(), notifier=notifier)

    queued = 0
    for report_type, score, narrative in DEMO_REPORTS:
        result = service.submit_narrative(
            org.id,
            "demo-officer",
            narrative,
            report_type=report_type,
            accuracy_score=score,
        )
        if result.routing is not None and result.routing.review_item is not None:
            queued += 1

    session.commit()
    print(
        f"Seeded 1 organization, {len(DEMO_REPORTS)} reports "
        f"({queued} queued for review, {len(notifier.events)} notifications)."
    )


def main() -> None:
    settings = get_settings()
    engine = create_engine(settings.database_url)
    Base.metadata.create_all(engine)

    with Session(engine) as session:
        seed(session)


if __name__ == "__main__":
    main()
