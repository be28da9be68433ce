"""Role resolver: turns already-fetched user/session data into AuthorizationFacts.

Pure and synchronous. Fetching (database, cache, retries) belongs to the caller,
see ``storeroom.services.profile``.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional

from storeroom.constants.roles import Role
from storeroom.errors import FactsUnavailableError

log = logging.getLogger(__name__)

_EMPTY_FLAGS: Mapping[str, bool] = MappingProxyType({})


@dataclass(frozen=True)
class LocationRef:
    id: int
    parent_id: Optional[int] = None
    is_standalone: bool = True

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @classmethod
    def from_payload(cls, data: Any) -> Optional['LocationRef']:
        if not isinstance(data, dict) or data.get('id') is None:
            return None
        return cls(
            id=int(data['id']),
            parent_id=data.get('parent_location', data.get('parent_id')),
            is_standalone=bool(data.get('is_standalone', True)),
        )


@dataclass(frozen=True)
class PermissionSnapshot:
    """Session/profile data as delivered by the profile fetch."""
    is_superuser: bool = False
    groups: FrozenSet[str] = frozenset()
    flags: Mapping[str, bool] = field(default_factory=lambda: _EMPTY_FLAGS)
    codenames: FrozenSet[str] = frozenset()
    is_main_store_incharge: bool = False
    responsible_location: Optional[LocationRef] = None

    @classmethod
    def from_payload(cls, payload: Optional[Dict[str, Any]]) -> 'PermissionSnapshot':
        """Parse the ``my_permissions``-style payload.

        Boolean ``can_*`` entries become flags; ``django_permissions`` (or
        ``codenames``) are the legacy codenames; ``groups`` may be a list of
        names or of ``{"name": ...}`` objects.
        """
        if not payload:
            return cls()
        groups = set()
        for g in payload.get('groups') or []:
            name = g.get('name') if isinstance(g, dict) else g
            if name:
                groups.add(str(name))
        codenames = payload.get('django_permissions')
        if codenames is None:
            codenames = payload.get('codenames') or []
        flags = {
            k: v for k, v in payload.items()
            if k.startswith('can_') and isinstance(v, bool)
        }
        for k, v in (payload.get('permissions') or {}).items():
            if isinstance(v, bool):
                flags[k] = flags.get(k, False) or v
        return cls(
            is_superuser=payload.get('is_superuser') is True,
            groups=frozenset(groups),
            flags=MappingProxyType(flags),
            codenames=frozenset(str(c) for c in codenames),
            is_main_store_incharge=payload.get('is_main_store_incharge') is True,
            responsible_location=LocationRef.from_payload(payload.get('responsible_location')),
        )


@dataclass(frozen=True)
class CustomRoleGrant:
    """What the resolver needs to know about one assigned custom role."""
    permission_grants: FrozenSet[str]
    is_active: bool = True
    requires_base_role: Optional[Role] = None
    name: str = ''

    @classmethod
    def from_model(cls, custom_role) -> 'CustomRoleGrant':
        return cls(
            permission_grants=frozenset(custom_role.permission_keys),
            is_active=bool(custom_role.is_active),
            requires_base_role=Role.parse(custom_role.requires_base_role),
            name=custom_role.name,
        )


@dataclass(frozen=True)
class AuthorizationFacts:
    is_superuser: bool = False
    legacy_role: Optional[Role] = None
    groups: FrozenSet[str] = frozenset()
    permission_flags: Mapping[str, bool] = field(default_factory=lambda: _EMPTY_FLAGS)
    legacy_codenames: FrozenSet[str] = frozenset()
    is_main_store_incharge: bool = False
    responsible_location: Optional[LocationRef] = None

    @classmethod
    def denied(cls) -> 'AuthorizationFacts':
        """Facts that grant nothing; used when the real facts are unavailable."""
        return cls()

    def to_claims(self) -> Dict[str, Any]:
        """JSON-safe summary (JWT claims, /me responses)."""
        loc = self.responsible_location
        return {
            'is_superuser': self.is_superuser,
            'role': self.legacy_role.value if self.legacy_role else None,
            'groups': sorted(self.groups),
            'perms': sorted(k for k, v in self.permission_flags.items() if v),
            'codenames': sorted(self.legacy_codenames),
            'is_main_store_incharge': self.is_main_store_incharge,
            'responsible_location': {'id': loc.id, 'parent_location': loc.parent_id, 'is_standalone': loc.is_standalone} if loc else None,
        }


def _legacy_role_of(user) -> Optional[Role]:
    raw = getattr(user, 'role', None)
    role = Role.parse(raw)
    if raw and role is None:
        log.warning('Ignoring unknown legacy role %r on user %s', raw, getattr(user, 'id', None))
    return role


def grant_applies(grant: CustomRoleGrant, legacy_role: Optional[Role]) -> bool:
    if not grant.is_active:
        return False
    return grant.requires_base_role is None or grant.requires_base_role == legacy_role


def resolve_facts(user, snapshot: Optional[PermissionSnapshot] = None,
                  custom_roles: Iterable[CustomRoleGrant] = ()) -> AuthorizationFacts:
    """Resolve the facts for ``user`` (any object with ``is_superuser`` and ``role``).

    Custom role grants only ever add flags: the merge is a union over the
    snapshot's direct flags and every active, base-role-compatible grant.
    """
    snapshot = snapshot or PermissionSnapshot()
    legacy_role = _legacy_role_of(user)
    flags: Dict[str, bool] = {k: v for k, v in snapshot.flags.items() if v}
    for grant in custom_roles:
        if not grant_applies(grant, legacy_role):
            continue
        for key in grant.permission_grants:
            flags[key] = True
    return AuthorizationFacts(
        is_superuser=bool(getattr(user, 'is_superuser', False)) or snapshot.is_superuser,
        legacy_role=legacy_role,
        groups=frozenset(snapshot.groups),
        permission_flags=MappingProxyType(flags),
        legacy_codenames=frozenset(snapshot.codenames),
        is_main_store_incharge=snapshot.is_main_store_incharge,
        responsible_location=snapshot.responsible_location,
    )


def facts_or_denied(fetch: Callable[[], AuthorizationFacts]) -> AuthorizationFacts:
    """Run ``fetch``; unavailable facts resolve to the deny-all facts."""
    try:
        return fetch()
    except FactsUnavailableError as e:
        log.warning('Authorization facts unavailable, denying: %s', e.detail)
        return AuthorizationFacts.denied()


__all__ = [
    'LocationRef', 'PermissionSnapshot', 'CustomRoleGrant', 'AuthorizationFacts',
    'grant_applies', 'resolve_facts', 'facts_or_denied',
]
