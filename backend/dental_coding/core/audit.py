"""Audit logging for the procedure coding pipeline.

Every code suggestion run leaves an audit trail so a billing reviewer
can reconstruct which codes were proposed, which were corrected by the
rule engine, and which were dropped before reaching the clinician:
- Suggestion runs (codes emitted, degradations)
- Rule-based corrections
- Candidates dropped at the catalog boundary

This audit log should be persisted to a secure, append-only store
in production. No patient identifiers are recorded here.
"""

import logging
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, Field

# Separate audit logger for billing-relevant events
audit_logger = logging.getLogger("audit")


class AuditAction(str, Enum):
    """Types of auditable actions."""

    # Pipeline
    SUGGEST = "suggest"
    CORRECT = "correct"
    DROP = "drop"

    # LLM boundary
    LLM_DEGRADED = "llm_degraded"

    # System
    ERROR = "error"


class AuditEvent(BaseModel):
    """Audit event record."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    action: AuditAction = Field(..., description="Type of action performed")
    resource_type: str = Field(..., description="Type of resource involved")
    resource_id: str | None = Field(None, description="ID of specific resource")
    request_id: str | None = Field(None, description="Pipeline run identifier")
    details: dict | None = Field(None, description="Additional context")
    success: bool = Field(True, description="Whether action succeeded")


def log_audit(
    action: AuditAction,
    resource_type: str,
    resource_id: str | None = None,
    request_id: str | None = None,
    details: dict | None = None,
    success: bool = True,
) -> AuditEvent:
    """Log an audit event.

    Args:
        action: Type of action being audited
        resource_type: The type of resource involved (e.g. "nza_code")
        resource_id: Specific resource identifier (e.g. the code)
        request_id: Pipeline run identifier
        details: Additional context
        success: Whether the action succeeded

    Returns:
        The created AuditEvent
    """
    event = AuditEvent(
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        request_id=request_id,
        details=details,
        success=success,
    )

    log_level = logging.INFO if success else logging.WARNING
    audit_logger.log(
        log_level,
        f"AUDIT: {action.value} {resource_type}"
        f"{f'/{resource_id}' if resource_id else ''}"
        f"{f' request={request_id}' if request_id else ''}"
        f" success={success}",
        extra={"audit_event": event.model_dump()},
    )

    return event


def log_correction(
    code: str,
    original_code: str,
    corrections: list[str],
    request_id: str | None = None,
) -> AuditEvent:
    """Log a rule-based correction of an LLM-proposed code."""
    return log_audit(
        action=AuditAction.CORRECT,
        resource_type="nza_code",
        resource_id=code,
        request_id=request_id,
        details={"original_code": original_code, "corrections": corrections},
    )


def log_dropped_code(code: str, request_id: str | None = None) -> AuditEvent:
    """Log a candidate dropped because its code is not in the catalog."""
    return log_audit(
        action=AuditAction.DROP,
        resource_type="nza_code",
        resource_id=code,
        request_id=request_id,
        details={"reason": "unknown_code"},
        success=False,
    )


def log_suggestion_run(
    request_id: str,
    codes: list[str],
    degraded: bool = False,
    reason: str | None = None,
) -> AuditEvent:
    """Log the outcome of one treatment-chat run.

    Degraded runs (LLM timeout or unparseable output) are logged as
    LLM_DEGRADED with success=False.
    """
    details: dict = {"codes": codes, "count": len(codes)}
    if reason:
        details["reason"] = reason

    return log_audit(
        action=AuditAction.LLM_DEGRADED if degraded else AuditAction.SUGGEST,
        resource_type="treatment_chat",
        request_id=request_id,
        details=details,
        success=not degraded,
    )
