from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger("audit")


def address_fingerprint(address: str) -> str:
    """Stable, non-reversible id for a patient address in audit records."""

    return "patient:" + hashlib.sha256(address.encode("utf-8")).hexdigest()[:16]


@dataclass
class AuditEvent:
    """Structured representation of an audit event.

    Keeps the payload free of PHI: ids, states and counts only, never
    question text, answers, names or ages.
    """

    timestamp: str
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    subject: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None


class AuditService:
    def log_event(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
        subject: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Log a structured audit event.

        - `action`: high-level verb, e.g. "onboarding_transition", "verify_query".
        - `resource_type`: coarse type, e.g. "patient_profile", "patient_query".
        - `resource_id`: stable identifier when available.
        - `subject`: the acting clinician's identity-provider subject, if any.
        - `extra`: optional small dict of non-PHI metadata.
        """

        event = AuditEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            subject=subject,
            extra=extra,
        )

        try:
            logger.info(json.dumps(asdict(event)))
        except TypeError:
            # Something in extra is not JSON serializable; drop it.
            safe_event = asdict(event)
            safe_event["extra"] = None
            logger.info(json.dumps(safe_event))


audit_service = AuditService()
