from __future__ import annotations

from collections.abc import Collection
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from app.core.clock import as_utc
from app.core.constants import OPEN_QUEUE_STATUSES, PRIORITY_RANK
from app.core.exceptions import ConcurrentModificationError, InvalidStateError, NotFoundError
from app.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id: UUID) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def get_or_raise(self, entity_id: UUID | str) -> ModelT:
        eid = UUID(entity_id) if isinstance(entity_id, str) else entity_id
        entity = self.get(eid)
        if entity is None:
            raise NotFoundError(f"{self.model.__name__} {entity_id} not found")
        return entity

    def list(self, limit: int = 100, offset: int = 0) -> list[ModelT]:
        stmt = select(self.model).offset(offset).limit(limit)
        return self.db.execute(stmt).scalars().all()

    def update(self, entity: ModelT, **kwargs) -> ModelT:
        for key, value in kwargs.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity


class VersionedRepository(BaseRepository[ModelT]):
    """Repository for rows carrying ``status`` and ``version`` columns.

    Writes go through :meth:`conditional_update`, which only succeeds when the
    row still has the status and version the caller read.
    """

    def conditional_update(
        self,
        entity: ModelT,
        expected_status: str | Collection[str],
        **values,
    ) -> ModelT:
        """Apply *values* iff the row is still in *expected_status* at the read version.

        Raises
        ------
        InvalidStateError
            The row's current status is not one of *expected_status*.
        ConcurrentModificationError
            The status matches but another writer bumped the version.
        """
        expected = {expected_status} if isinstance(expected_status, str) else set(expected_status)
        model = self.model
        read_version = entity.version

        if entity.status not in expected:
            raise InvalidStateError(
                f"{model.__name__} {entity.id} is {entity.status!r}; "
                f"expected one of {sorted(expected)}"
            )

        self.db.flush()
        stmt = (
            update(model)
            .where(
                model.id == entity.id,
                model.status.in_(expected),
                model.version == read_version,
            )
            .values(**values, version=model.version + 1)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.refresh(entity)

        if result.rowcount == 0:
            if entity.status not in expected:
                raise InvalidStateError(
                    f"{model.__name__} {entity.id} is {entity.status!r}; "
                    f"expected one of {sorted(expected)}"
                )
            raise ConcurrentModificationError(
                f"{model.__name__} {entity.id} changed since version {read_version}; "
                f"re-read and retry"
            )
        return entity


class OrganizationRepository(BaseRepository[models.Organization]):
    model = models.Organization

    def increment_counters(
        self,
        organization_id: UUID,
        *,
        reports: int = 0,
        low_accuracy: int = 0,
    ) -> None:
        """Atomically bump the aggregate counters in SQL."""
        Org = models.Organization
        self.db.execute(
            update(Org)
            .where(Org.id == organization_id)
            .values(
                report_count=Org.report_count + reports,
                low_accuracy_count=Org.low_accuracy_count + low_accuracy,
            )
        )

    def reconcile_counters(self, organization_id: UUID) -> models.Organization:
        """Recompute both counters from the report and queue-item collections."""
        org = self.get_or_raise(organization_id)

        report_count = self.db.execute(
            select(func.count(models.Report.id)).where(
                models.Report.organization_id == organization_id,
                models.Report.submitted_at.is_not(None),
            )
        ).scalar_one()
        low_accuracy_count = self.db.execute(
            select(func.count(func.distinct(models.ReviewQueueItem.report_id))).where(
                models.ReviewQueueItem.organization_id == organization_id,
                models.ReviewQueueItem.escalation_tier == 0,
            )
        ).scalar_one()

        org.report_count = report_count
        org.low_accuracy_count = low_accuracy_count
        self.db.flush()
        return org


class ReportTemplateRepository(BaseRepository[models.ReportTemplate]):
    model = models.ReportTemplate

    def list_for_organization(self, organization_id: UUID | None) -> list[models.ReportTemplate]:
        """Built-in templates plus those owned by *organization_id*."""
        T = models.ReportTemplate
        stmt = select(T).order_by(T.name.asc())
        if organization_id is None:
            stmt = stmt.where(T.organization_id.is_(None))
        else:
            stmt = stmt.where((T.organization_id.is_(None)) | (T.organization_id == organization_id))
        return list(self.db.execute(stmt).scalars().all())


class ReportRepository(VersionedRepository[models.Report]):
    model = models.Report


class ReviewQueueItemRepository(VersionedRepository[models.ReviewQueueItem]):
    model = models.ReviewQueueItem

    def get_open_for_report(self, report_id: UUID) -> models.ReviewQueueItem | None:
        Item = models.ReviewQueueItem
        stmt = select(Item).where(
            Item.report_id == report_id,
            Item.status.in_(OPEN_QUEUE_STATUSES),
        )
        return self.db.execute(stmt).scalars().first()

    def has_first_line_item(self, report_id: UUID) -> bool:
        """Whether *report_id* has ever been routed to first-line review."""
        Item = models.ReviewQueueItem
        stmt = select(func.count(Item.id)).where(
            Item.report_id == report_id,
            Item.escalation_tier == 0,
        )
        return self.db.execute(stmt).scalar_one() > 0

    def list_for_organization(
        self,
        organization_id: UUID,
        *,
        status: str | None = None,
        below_score: float | None = None,
    ) -> list[models.ReviewQueueItem]:
        """Items for *organization_id*, earliest due first, high priority first on ties."""
        Item = models.ReviewQueueItem
        stmt = select(Item).where(Item.organization_id == organization_id)
        if status is not None:
            stmt = stmt.where(Item.status == status)
        if below_score is not None:
            stmt = stmt.where(Item.accuracy_score < below_score)
        items = list(self.db.execute(stmt).scalars().all())
        return sorted(items, key=lambda i: (as_utc(i.due_date), PRIORITY_RANK.get(i.priority, 99)))


class AuditEventRepository(BaseRepository[models.AuditEvent]):
    model = models.AuditEvent
