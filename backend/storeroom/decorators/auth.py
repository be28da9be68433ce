import logging
from functools import wraps
from flask import abort, g
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from storeroom.services import policy
from storeroom.services.constraints import author_standing
from storeroom.services.profile import load_facts

log = logging.getLogger(__name__)


def current_facts():
    """Facts for the JWT identity, resolved once per request from the database."""
    facts = g.get('authz_facts')
    if facts is None:
        ident = get_jwt_identity()
        try:
            user_id = int(ident) if ident is not None else None
        except (TypeError, ValueError):
            user_id = None
        facts = load_facts(user_id)
        g.authz_facts = facts
        g.authz_standing = author_standing(facts).value
    return facts


def _guard(check, description: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if not check(current_facts()):
                log.info('Denied %s: %s', fn.__name__, description)
                abort(403, description=description)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_permissions(*keys: str):
    return _guard(lambda facts: policy.has_all(facts, keys), 'Missing permission')


def require_any_permission(*keys: str):
    return _guard(lambda facts: policy.has_any(facts, keys), 'Missing permission')


def require_role(*roles):
    return _guard(lambda facts: any(policy.has_role(facts, r) for r in roles), 'Missing role')


def require_custom_role_manager():
    return _guard(policy.can_manage_custom_roles, 'Only System Admins and Location Heads can manage custom roles')
