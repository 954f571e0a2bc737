"""
Document lifecycle helpers shared by the document modules.

``advance_status`` is the double-posting guard: it checks the declared
workflow, then moves the document with a compare-and-swap

    UPDATE <table> SET status = :to WHERE id = :id AND status = :from

so a second caller (sequential or concurrent) matches zero rows and gets
AlreadyReceivedError / InvalidTransitionError before any side effect runs.
"""

from __future__ import annotations

import re
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from stockbook_kernel.domain.workflow import Transition, Workflow
from stockbook_kernel.exceptions import (
    AlreadyReceivedError,
    DocumentNotFoundError,
    InvalidTransitionError,
    NotFoundError,
)
from stockbook_kernel.logging_config import get_logger

logger = get_logger("modules.lifecycle")


def load_document(session: Session, model, document_id: UUID, document_type: str):
    document = session.get(model, document_id)
    if document is None:
        raise DocumentNotFoundError(document_type, str(document_id))
    return document


def require(session: Session, model, key: UUID, entity: str):
    """Load a referenced master record or raise NotFoundError."""
    row = session.get(model, key)
    if row is None:
        raise NotFoundError(entity, str(key))
    return row


def _refusal(document_type: str, document_id: UUID, status: str, action: str) -> InvalidTransitionError:
    if action == "receive":
        return AlreadyReceivedError(document_type, str(document_id), status)
    return InvalidTransitionError(document_type, str(document_id), status, action)


def advance_status(
    session: Session,
    model,
    document,
    workflow: Workflow,
    action: str,
    actor_id: UUID,
    document_type: str,
    **values,
) -> Transition:
    """Apply ``action`` to ``document`` or raise without side effects."""
    transition = workflow.transition_for(document.status, action)
    if transition is None:
        raise _refusal(document_type, document.id, document.status, action)

    result = session.execute(
        update(model)
        .where(model.id == document.id, model.status == transition.from_state)
        .values(status=transition.to_state, updated_by_id=actor_id, **values)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        session.refresh(document)
        logger.warning(
            "document_transition_lost_race",
            extra={
                "document_type": document_type,
                "document_id": str(document.id),
                "action": action,
                "status": document.status,
            },
        )
        raise _refusal(document_type, document.id, document.status, action)

    session.refresh(document)
    logger.info(
        "document_transitioned",
        extra={
            "document_type": document_type,
            "document_id": str(document.id),
            "workflow": workflow.name,
            "action": action,
            "from_state": transition.from_state,
            "to_state": transition.to_state,
        },
    )
    return transition


def next_document_number(session: Session, column, prefix: str, width: int = 3) -> str:
    """Next ``{prefix}{NNN}`` value for ``column``, e.g. DPO-2024-004."""
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    highest = 0
    for value in session.scalars(select(column).where(column.like(f"{prefix}%"))).all():
        match = pattern.match(value)
        if match:
            highest = max(highest, int(match.group(1)))
    return f"{prefix}{highest + 1:0{width}d}"
