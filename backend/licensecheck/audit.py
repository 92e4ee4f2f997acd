"""Audit trail writer."""

from typing import Any, Optional, Union
from uuid import UUID

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from licensecheck.db.models import AuditLog

logger = structlog.get_logger()


async def audit_log(
    db: AsyncSession,
    action: str,
    entity_type: str,
    entity_id: Optional[Union[UUID, str]] = None,
    metadata: Optional[dict[str, Any]] = None,
    user_id: Optional[str] = None,
) -> None:
    """Add an audit log entry with an immediate commit.

    Callers commit their own work first. Failures are logged and never
    raised, so auditing can not break the operation being audited.

    Args:
        db: Database session
        action: What happened ('verify', 'auto_verify', 'auto_verify_failed', ...)
        entity_type: Kind of entity ('job', 'license', 'task', ...)
        entity_id: Identifier of the entity
        metadata: Optional structured context
        user_id: Acting user, None for the system
    """
    try:
        db.add(
            AuditLog(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                user_id=user_id,
                details=metadata,
            )
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(
            "Failed to create audit log",
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            error=str(e),
        )
        try:
            await db.rollback()
        except SQLAlchemyError:
            pass
