import uuid, json
from sqlalchemy.orm import Session
from guidetrip.models.audit_log import AuditLog


class AuditActions:
    REFUND_ORDER = "refund_order"
    USER_REFUND_ORDER = "user_refund_order"
    ASSIGN_GUIDE = "assign_guide"
    CANCEL_ORDER = "cancel_order"
    REOPEN_ORDER = "reopen_order"


def log_audit(db: Session, actor_id: str, action: str, entity_type: str, entity_id: str,
              details: dict | None = None, client_ip: str | None = None):
    """Stage an audit row in the caller's transaction; the caller commits."""
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details_json=json.dumps(details or {}, ensure_ascii=False),
        client_ip=client_ip[:45] if client_ip else None,
    ))
