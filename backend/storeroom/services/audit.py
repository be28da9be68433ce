from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g
from flask_jwt_extended import get_jwt_identity
from storeroom import get_db
from storeroom.models.audit import AuditLog


def _facts_snapshot() -> Dict[str, Any]:
    facts = g.get('authz_facts')
    if facts is None:
        return {}
    claims = facts.to_claims()
    return {
        'is_superuser': claims['is_superuser'],
        'role': claims['role'],
        'groups': claims['groups'],
        'standing': g.get('authz_standing'),
    }


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[str] = None, meta: Optional[Dict[str, Any]] = None):
    """Persist an audit log entry within the current DB session.

    Parameters:
      action: short action code e.g. CUSTOM_ROLE.CREATE, CUSTOM_ROLE.REPLACE, USER.CUSTOM_ROLES.SET
      entity: optional entity name (CustomRole, User, etc.)
      entity_id: optional primary key string
      meta: additional JSON-safe dictionary (will be shallow copied)
    """
    session = get_db()
    actor = None
    try:
        ident = get_jwt_identity()
        actor = int(ident) if ident is not None else None
    except Exception:
        actor = None  # no JWT context (e.g. scripts): record as system (actor 0)
    log = AuditLog(
        actor_user_id=actor or 0,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        facts_snapshot=_facts_snapshot(),
        meta=dict(meta or {}),
    )
    session.add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
