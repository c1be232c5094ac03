"""FastAPI dependency injection — database sessions and service factories."""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from app.db.session import get_session_factory
from app.llm.client import OllamaClient
from app.llm.extractor import FieldExtractor, OllamaFieldExtractor
from app.notification.notifier import LoggingNotifier, Notifier
from app.pipeline.service import ReportPipelineService
from app.review.queue_manager import QueueManager
from app.review.router import ReviewPolicy
from app.review.stats import TriageStatsAggregator


def get_db() -> Generator[Session, None, None]:
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    db = get_session_factory()()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_policy() -> ReviewPolicy:
    return ReviewPolicy.from_settings()


def get_notifier() -> Notifier:
    return LoggingNotifier()


def get_extractor(db: Session = Depends(get_db)) -> FieldExtractor:
    """Ollama-backed extractor whose calls are audited in the request session."""
    return OllamaFieldExtractor(OllamaClient(db_session=db))


def get_pipeline_service(
    db: Session = Depends(get_db),
    extractor: FieldExtractor = Depends(get_extractor),
    notifier: Notifier = Depends(get_notifier),
    policy: ReviewPolicy = Depends(get_policy),
) -> ReportPipelineService:
    """Return a ReportPipelineService bound to the current DB session."""
    return ReportPipelineService(db, extractor=extractor, notifier=notifier, policy=policy)


def get_queue_manager(
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    policy: ReviewPolicy = Depends(get_policy),
) -> QueueManager:
    """Return a QueueManager bound to the current DB session."""
    return QueueManager(db, policy, notifier)


def get_stats_aggregator(
    db: Session = Depends(get_db),
    policy: ReviewPolicy = Depends(get_policy),
) -> TriageStatsAggregator:
    return TriageStatsAggregator(db, policy)
