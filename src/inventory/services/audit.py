"""Append-only audit trail for administrative changes."""

import logging
from dataclasses import asdict, dataclass
from typing import Any

from django.db import DatabaseError, transaction

from ..models import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldChange:
    """A single field going from ``old`` to ``new``."""

    field: str
    old: Any
    new: Any

    def as_dict(self) -> dict:
        data = asdict(self)
        for key in ("old", "new"):
            if data[key] is not None and not isinstance(
                data[key], (str, int, float, bool)
            ):
                data[key] = str(data[key])
        return data


def diff_fields(instance, updates: dict) -> list[FieldChange]:
    """Return the changes ``updates`` would make to ``instance``.

    Fields whose value is unchanged are skipped.
    """
    changes = []
    for field, new in updates.items():
        old = getattr(instance, field)
        if old != new:
            changes.append(FieldChange(field=field, old=old, new=new))
    return changes


def _client_meta(request):
    if request is None:
        return None, ""
    ip = request.META.get("REMOTE_ADDR") or None
    agent = request.META.get("HTTP_USER_AGENT", "")[:500]
    return ip, agent


def record(
    entity_type: str,
    entity_id,
    action: str,
    changes: list[FieldChange] = (),
    performed_by=None,
    request=None,
    ip_address=None,
    user_agent="",
):
    """Write an audit entry. Failures are logged, never raised.

    Client address and agent are taken from ``request`` unless given.
    """
    ip, agent = _client_meta(request)
    ip = ip_address or ip
    agent = (user_agent or agent)[:500]
    try:
        with transaction.atomic():
            return AuditLog.objects.create(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                changes=[c.as_dict() for c in changes],
                performed_by=performed_by,
                ip_address=ip,
                user_agent=agent,
            )
    except DatabaseError:
        logger.exception(
            "Could not write audit entry %s %s %s",
            entity_type,
            entity_id,
            action,
        )
        return None
