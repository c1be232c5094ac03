"""LLM call auditing -- records every field-extraction call for governance.

Every call to the Ollama backend is persisted in the ``llm_call_logs`` table
so that supervisors can trace which validation decisions were model-assisted,
what the model saw, and what it returned.

.. important::
   ``prompt_text`` contains the officer narrative.  Rows must stay inside
   the report store and are never written to application logs.
"""
from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.db.models import LLMCallLog

logger = logging.getLogger(__name__)


def log_llm_call(
    db_session: Session,
    *,
    report_id: UUID | None = None,
    use_case: str,
    model: str,
    prompt_text: str,
    response_text: str,
    decision: str | None = None,
    accepted: bool | None = None,
    latency_ms: int | None = None,
    token_count: int | None = None,
) -> LLMCallLog:
    """Create an ``LLMCallLog`` row in the database.

    Parameters
    ----------
    db_session:
        Active SQLAlchemy session.
    report_id:
        Optional FK to the report being validated.
    use_case:
        Short label describing the LLM use-case (e.g.
        ``"validate_required_fields"``).
    model:
        Model identifier string (e.g. ``"qwen2.5:7b"``).
    prompt_text:
        The full prompt sent to the model.
    response_text:
        The raw response from the model.
    decision:
        Summary of the outcome, if applicable.
    accepted:
        Whether the response passed boundary validation.
    latency_ms:
        Round-trip latency in milliseconds.
    token_count:
        Number of tokens in the response, if known.

    Returns
    -------
    LLMCallLog
        The newly created row (already added to the session).
    """
    row = LLMCallLog(
        report_id=report_id,
        use_case=use_case,
        model=model,
        prompt_text=prompt_text,
        response_text=response_text,
        decision=decision,
        accepted=accepted,
        latency_ms=latency_ms,
        token_count=token_count,
    )
    db_session.add(row)
    db_session.flush()
    logger.debug("LLM call logged: use_case=%s model=%s latency_ms=%s", use_case, model, latency_ms)
    return row


def get_llm_calls(
    db_session: Session,
    *,
    report_id: UUID | None = None,
    use_case: str | None = None,
    limit: int = 100,
) -> list[dict]:
    """Query ``llm_call_logs`` with optional filters, newest first."""
    stmt = select(LLMCallLog).order_by(LLMCallLog.created_at.desc())

    if report_id is not None:
        stmt = stmt.where(LLMCallLog.report_id == report_id)
    if use_case is not None:
        stmt = stmt.where(LLMCallLog.use_case == use_case)

    stmt = stmt.limit(limit)

    rows = db_session.execute(stmt).scalars().all()
    return [
        {
            "id": str(row.id),
            "report_id": str(row.report_id) if row.report_id else None,
            "use_case": row.use_case,
            "model": row.model,
            "prompt_text": row.prompt_text,
            "response_text": row.response_text,
            "decision": row.decision,
            "accepted": row.accepted,
            "latency_ms": row.latency_ms,
            "token_count": row.token_count,
            "created_at": row.created_at.isoformat() if row.created_at else None,
        }
        for row in rows
    ]
