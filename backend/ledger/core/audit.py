"""Audit logging for revenue ledger mutations.

Every change to a stored aggregate, and every event the ledger gives up on,
produces one ``audit_event`` log line so totals can be traced back to the
invoice events that produced them.
"""

from typing import Any

import structlog

logger = structlog.get_logger("audit")


class AuditAction:
    """Audit action constants."""

    # Aggregates
    AGGREGATE_CREATE = "revenue.aggregate.create"
    AGGREGATE_UPDATE = "revenue.aggregate.update"
    AGGREGATE_DELETE = "revenue.aggregate.delete"
    AGGREGATE_RECOMPUTE = "revenue.aggregate.recompute"

    # Events
    EVENT_DEAD_LETTER = "revenue.event.dead_letter"


def audit_log(
    action: str,
    actor: str | None = None,
    resource_type: str | None = None,
    resource_id: str | int | None = None,
    details: dict[str, Any] | None = None,
    success: bool = True,
) -> None:
    """Log an audit event.

    Args:
        action: The action being performed (use AuditAction constants)
        actor: What triggered the action, e.g. an event id or "admin"
        resource_type: Type of resource being acted upon (e.g., "revenue")
        resource_id: ID of the resource being acted upon
        details: Additional details about the action
        success: Whether the action succeeded
    """
    log_data: dict[str, Any] = {
        "audit": True,
        "action": action,
        "success": success,
    }

    if actor:
        log_data["actor"] = actor
    if resource_type:
        log_data["resource_type"] = resource_type
    if resource_id is not None:
        log_data["resource_id"] = str(resource_id)
    if details:
        log_data["details"] = details

    if success:
        logger.info("audit_event", **log_data)
    else:
        logger.warning("audit_event", **log_data)
