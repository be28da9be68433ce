"""Role constraint engine: what a custom role built on a base role may grant."""
from __future__ import annotations
import enum
from dataclasses import dataclass
from functools import reduce
from typing import Dict, FrozenSet, Optional

from storeroom.constants.roles import Role, BASE_PERMISSIONS, UNASSIGNABLE_PERMISSIONS
from storeroom.services.facts import AuthorizationFacts
from storeroom.services import policy


class AuthorStanding(str, enum.Enum):
    SUPERUSER = 'SUPERUSER'
    ROOT_LOCATION_HEAD = 'ROOT_LOCATION_HEAD'
    ORDINARY = 'ORDINARY'

    @property
    def is_elevated(self) -> bool:
        return self is not AuthorStanding.ORDINARY


@dataclass(frozen=True)
class RolePermissionProfile:
    base_permissions: FrozenSet[str]
    unassignable_permissions: FrozenSet[str]


_PROFILES: Dict[Role, RolePermissionProfile] = {
    role: RolePermissionProfile(BASE_PERMISSIONS[role], UNASSIGNABLE_PERMISSIONS[role])
    for role in Role
}


def profile_for(role) -> RolePermissionProfile:
    parsed = Role.parse(role)
    if parsed is None:
        raise ValueError(f'Unknown role: {role!r}')
    return _PROFILES[parsed]


def any_role_restrictions() -> FrozenSet[str]:
    """Keys restricted for at least one base role (checked for "any role" custom roles)."""
    return reduce(lambda acc, p: acc | p.unassignable_permissions, _PROFILES.values(), frozenset())


def is_grantable(role, key: str, standing: AuthorStanding) -> bool:
    profile = profile_for(role)
    if key in profile.base_permissions:
        # Implied by the base role already; shown locked, never granted.
        return False
    if key in profile.unassignable_permissions and not AuthorStanding(standing).is_elevated:
        return False
    return True


def author_standing(facts: AuthorizationFacts) -> AuthorStanding:
    # System admins (legacy field or group) author with superuser standing.
    if facts.is_superuser or policy.is_system_admin(facts):
        return AuthorStanding.SUPERUSER
    if policy.root_standing(facts) == policy.ROOT_LOCATION_HEAD:
        return AuthorStanding.ROOT_LOCATION_HEAD
    return AuthorStanding.ORDINARY


def profile_payload(role, standing: Optional[AuthorStanding] = None) -> dict:
    """Authoring-form view of a role profile.

    ``base_permissions`` is a ``{key: True}`` map (rendered locked on);
    ``unassignable_permissions`` lists the keys this author may not add.
    """
    parsed = Role.parse(role)
    profile = profile_for(parsed)
    restricted = profile.unassignable_permissions
    if standing is not None and AuthorStanding(standing).is_elevated:
        restricted = frozenset()
    return {
        'role': parsed.value,
        'base_permissions': {k: True for k in sorted(profile.base_permissions)},
        'unassignable_permissions': sorted(restricted - profile.base_permissions),
    }


__all__ = [
    'AuthorStanding', 'RolePermissionProfile', 'profile_for', 'any_role_restrictions',
    'is_grantable', 'author_standing', 'profile_payload',
]
