from __future__ import annotations
"""Audit logging decorator for route handlers.

Usage:

@audit_log('CUSTOM_ROLE.CREATE', entity='CustomRole', entity_id_key='id', meta_keys=['name', 'permissions'])
def create_custom_role(): ...

@audit_log('CUSTOM_ROLE.REPLACE', entity='CustomRole', entity_id_key='id',
           diff_keys=['name', 'permissions', 'is_active'],
           pre_fetch=lambda args, kwargs: snapshot_of(kwargs['role_id']))
def replace_custom_role(role_id): ...

The handler's return value may be a dict or a (dict, status[, headers]) tuple;
the first element is inspected, the original value is returned untouched.
Only successful handlers are audited: an exception raised by the handler
propagates before anything is recorded.
"""

import logging
from functools import wraps
from typing import Any, Callable, Dict, Iterable, Optional

from storeroom.services.audit import add_audit
from storeroom import get_db

log = logging.getLogger(__name__)


def _extract_payload(rv: Any):
    if isinstance(rv, tuple) and rv:
        return rv[0]
    return rv


def _diff(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    changes = {}
    for k in keys:
        if k in before and k in after and before.get(k) != after.get(k):
            changes[k] = {'before': before.get(k), 'after': after.get(k)}
    return changes


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data = _extract_payload(rv)
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = {k: data.get(k) for k in (meta_keys or ()) if k in data}
            if diff_keys and isinstance(before, dict):
                changes = _diff(before, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except Exception:
                # The main change is already committed; a lost audit row must not fail the request.
                session.rollback()
                log.exception('Failed to record audit entry %s', action)
            return rv
        return wrapper
    return outer
