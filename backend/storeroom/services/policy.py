"""Permission evaluator.

Stateless checks over AuthorizationFacts. Superuser short-circuits every
check on catalog keys and every role. Keys outside the catalog are denied
for all facts and logged, never raised.
"""
from __future__ import annotations
import logging
from typing import Dict, Iterable, Optional

from storeroom.constants import permissions as catalog
from storeroom.constants.roles import Role, ROLE_TO_GROUP, CENTRAL_STORE_INCHARGE_GROUP
from storeroom.services.facts import AuthorizationFacts

log = logging.getLogger(__name__)

CENTRAL_REGISTER_PERMISSION = 'can_fill_central_register'

ROOT_SYSTEM_ADMIN = 'SYSTEM_ADMIN'
ROOT_LOCATION_HEAD = 'ROOT_LOCATION_HEAD'
ROOT_MAIN_STORE_INCHARGE = 'ROOT_MAIN_STORE_INCHARGE'


def has_permission(facts: AuthorizationFacts, key: str) -> bool:
    # Unknown keys are denied for everyone, superusers included.
    if not catalog.is_known(key):
        log.warning('Permission check for unknown key %r denied', key)
        return False
    if facts.is_superuser:
        return True
    if facts.permission_flags.get(key) is True:
        return True
    codename = catalog.legacy_codename_of(key)
    if codename and codename in facts.legacy_codenames:
        return True
    return False


def has_any(facts: AuthorizationFacts, keys: Iterable[str]) -> bool:
    if facts.is_superuser:
        return True
    keys = list(keys or ())
    if not keys:
        return False
    return any(has_permission(facts, k) for k in keys)


def has_all(facts: AuthorizationFacts, keys: Iterable[str]) -> bool:
    if facts.is_superuser:
        return True
    keys = list(keys or ())
    if not keys:
        return False
    return all(has_permission(facts, k) for k in keys)


def has_group(facts: AuthorizationFacts, group_name: str) -> bool:
    return group_name in facts.groups


def has_role(facts: AuthorizationFacts, role) -> bool:
    role = Role.parse(role)
    if role is None:
        return False
    if facts.is_superuser:
        return True
    if facts.legacy_role is role:
        return True
    return ROLE_TO_GROUP[role] in facts.groups


def is_system_admin(facts: AuthorizationFacts) -> bool:
    return has_role(facts, Role.SYSTEM_ADMIN)


def is_location_head(facts: AuthorizationFacts) -> bool:
    return has_role(facts, Role.LOCATION_HEAD)


def is_stock_incharge(facts: AuthorizationFacts) -> bool:
    return has_role(facts, Role.STOCK_INCHARGE)


def is_auditor(facts: AuthorizationFacts) -> bool:
    return has_role(facts, Role.AUDITOR)


def is_central_store_incharge(facts: AuthorizationFacts) -> bool:
    # Any single signal is enough: the standing is reachable through several paths.
    return (
        facts.is_superuser
        or has_group(facts, CENTRAL_STORE_INCHARGE_GROUP)
        or has_permission(facts, CENTRAL_REGISTER_PERMISSION)
        or facts.is_main_store_incharge
    )


def can_manage_custom_roles(facts: AuthorizationFacts) -> bool:
    return is_system_admin(facts) or is_location_head(facts)


def root_standing(facts: AuthorizationFacts) -> Optional[str]:
    """Which ROOT standing the user holds, if any.

    A location head is ROOT when the responsible location has no parent; a stock
    incharge is ROOT when flagged as main store incharge.
    """
    if is_system_admin(facts):
        return ROOT_SYSTEM_ADMIN
    loc = facts.responsible_location
    if is_location_head(facts) and loc is not None and loc.is_root:
        return ROOT_LOCATION_HEAD
    if is_stock_incharge(facts) and facts.is_main_store_incharge:
        return ROOT_MAIN_STORE_INCHARGE
    return None


# --- Master catalog (items / categories) gating ---

def can_create_catalog_entries(facts: AuthorizationFacts) -> bool:
    """Only ROOT users, or users explicitly granted ``can_create_items``."""
    if is_system_admin(facts):
        return True
    if has_permission(facts, 'can_create_items'):
        return True
    return root_standing(facts) is not None


def can_edit_catalog_entries(facts: AuthorizationFacts) -> bool:
    if has_permission(facts, 'can_edit_items'):
        return True
    return can_create_catalog_entries(facts)


def can_delete_catalog_entries(facts: AuthorizationFacts) -> bool:
    return is_system_admin(facts)


_CANNOT_CREATE_MESSAGES: Dict[Role, str] = {
    Role.LOCATION_HEAD: 'Only ROOT Location Heads can create categories and items. Department heads cannot create master catalog entries. Contact your university admin.',
    Role.STOCK_INCHARGE: 'Only ROOT Main Store Incharges can create categories and items. Department store incharges cannot create master catalog entries. Contact your central admin.',
    Role.AUDITOR: 'Auditors have read-only access. Contact your admin to request custom permissions if needed.',
}


def cannot_create_message(facts: Optional[AuthorizationFacts]) -> str:
    if facts is None:
        return 'You must be logged in to create categories or items.'
    return _CANNOT_CREATE_MESSAGES.get(
        facts.legacy_role,
        'You do not have permission to create categories or items. Contact your administrator.',
    )


def effective_permissions(facts: AuthorizationFacts) -> Dict[str, bool]:
    """Every catalog key mapped to its decision for ``facts``."""
    return {k: has_permission(facts, k) for k in sorted(catalog.all_keys())}


__all__ = [
    'has_permission', 'has_any', 'has_all', 'has_group', 'has_role', 'is_system_admin',
    'is_location_head', 'is_stock_incharge', 'is_auditor', 'is_central_store_incharge',
    'can_manage_custom_roles', 'root_standing', 'can_create_catalog_entries',
    'can_edit_catalog_entries', 'can_delete_catalog_entries', 'cannot_create_message',
    'effective_permissions', 'ROOT_SYSTEM_ADMIN', 'ROOT_LOCATION_HEAD', 'ROOT_MAIN_STORE_INCHARGE',
]
