from __future__ import annotations
from types import MappingProxyType
from typing import List, Optional, Tuple
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from storeroom import get_db
from storeroom.constants.roles import Role, BASE_PERMISSIONS
from storeroom.errors import FactsUnavailableError
from storeroom.models.authz import User, UserGroup, Group, GroupPermission, UserPermission, LegacyPermission
from storeroom.services.custom_roles import CustomRoleStore
from storeroom.services.facts import (
    AuthorizationFacts, CustomRoleGrant, PermissionSnapshot, facts_or_denied, resolve_facts,
)
from storeroom.services.locations import LocationDirectory


def _group_names(session, user_id: int) -> List[str]:
    return list(session.execute(
        select(Group.name).join(UserGroup, UserGroup.group_id == Group.id).where(UserGroup.user_id == user_id)
    ).scalars())


def _codenames(session, user_id: int) -> set:
    via_groups = session.execute(
        select(LegacyPermission.codename)
        .join(GroupPermission, GroupPermission.permission_id == LegacyPermission.id)
        .join(UserGroup, UserGroup.group_id == GroupPermission.group_id)
        .where(UserGroup.user_id == user_id)
    ).scalars()
    direct = session.execute(
        select(LegacyPermission.codename)
        .join(UserPermission, UserPermission.permission_id == LegacyPermission.id)
        .where(UserPermission.user_id == user_id)
    ).scalars()
    return set(via_groups) | set(direct)


def fetch_profile(user_id: int, session=None) -> Tuple[User, PermissionSnapshot, List[CustomRoleGrant]]:
    """Load everything the resolver needs for ``user_id``.

    Base-role permissions are merged into the snapshot flags here, server side,
    so holders of a role always carry its base permissions.
    Raises FactsUnavailableError for missing/inactive users or database failures.
    """
    session = session if session is not None else get_db()
    try:
        user = session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
        if user is None or not user.is_active:
            raise FactsUnavailableError(f'No active user {user_id}')
        role = Role.parse(user.role)
        flags = {k: True for k in BASE_PERMISSIONS[role]} if role else {}
        snapshot = PermissionSnapshot(
            is_superuser=bool(user.is_superuser),
            groups=frozenset(_group_names(session, user.id)),
            flags=MappingProxyType(flags),
            codenames=frozenset(_codenames(session, user.id)),
            is_main_store_incharge=bool(user.is_main_store_incharge),
            responsible_location=LocationDirectory(session).ref(user.responsible_location_id),
        )
        grants = CustomRoleStore(session).grants_for(user.id)
    except SQLAlchemyError as e:
        session.rollback()
        raise FactsUnavailableError(f'Profile fetch failed: {e.__class__.__name__}') from e
    return user, snapshot, grants


def resolve_user_facts(user_id: int, session=None) -> AuthorizationFacts:
    user, snapshot, grants = fetch_profile(user_id, session)
    return resolve_facts(user, snapshot, grants)


def load_facts(user_id: Optional[int], session=None) -> AuthorizationFacts:
    """Facts for ``user_id``; deny-all facts when they cannot be fetched."""
    if user_id is None:
        return AuthorizationFacts.denied()
    return facts_or_denied(lambda: resolve_user_facts(user_id, session))


__all__ = ['fetch_profile', 'resolve_user_facts', 'load_facts']
