"""Custom role lifecycle: validate drafts against the constraint engine, persist them.

Validation rules run in order and the first failure wins:

1. name non-empty after trimming            -> EmptyNameError
2. location present                         -> MissingLocationError
3. at least one permission                  -> NoPermissionsError
4. every permission is a catalog key        -> UnknownGrantError
5. base role, when given, is a known Role   -> InvalidBaseRoleError
6. every permission grantable on the base   -> UnassignablePermissionError(key)

A custom role open to any base role cannot be checked against one role's
locks; for ordinary authors it is checked against the union of every role's
restricted set instead. Restricted keys are rejected, never stripped.

Updates replace the whole role (metadata and grant set) in one transaction.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple
from sqlalchemy import select, delete, func

from storeroom import get_db
from storeroom.constants import permissions as catalog
from storeroom.constants.roles import Role
from storeroom.errors import (
    CustomRoleValidationError, EmptyNameError, MissingLocationError, NoPermissionsError, MalformedDraftError,
    UnknownGrantError, InvalidBaseRoleError, UnassignablePermissionError,
    BaseRoleMismatchError, CustomRoleNotFoundError,
)
from storeroom.models.authz import User
from storeroom.models.custom_role import CustomRole, CustomRolePermission, UserCustomRole
from storeroom.services.constraints import AuthorStanding, any_role_restrictions, is_grantable, profile_for
from storeroom.services.facts import CustomRoleGrant
from storeroom.services.locations import LocationDirectory

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CustomRoleDraft:
    name: str
    location_id: Optional[int]
    permission_grants: FrozenSet[str] = frozenset()
    description: str = ''
    requires_base_role: Optional[str] = None
    is_active: bool = True

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> 'CustomRoleDraft':
        """Build a draft from a request body.

        Grants come from a ``permissions`` list, or from the form shape where
        each permission key is a top-level boolean. Bodies of the wrong shape
        raise ``MalformedDraftError``.
        """
        if not isinstance(data, dict):
            raise MalformedDraftError('Request body must be a JSON object')
        permissions = data.get('permissions')
        if permissions is None:
            permissions = []
        if not isinstance(permissions, list) or not all(isinstance(k, str) for k in permissions):
            raise MalformedDraftError('permissions must be a list of permission keys')
        for field in ('name', 'description', 'requires_base_role'):
            value = data.get(field)
            if value is not None and not isinstance(value, str):
                raise MalformedDraftError(f'{field} must be a string')
        location = data.get('location', data.get('location_id'))
        if isinstance(location, bool) or not isinstance(location, (int, str, type(None))):
            raise MalformedDraftError('location must be a location id')
        grants = set(permissions)
        grants.update(k for k, v in data.items() if k.startswith('can_') and v is True)
        return cls(
            name=data.get('name') or '',
            description=data.get('description') or '',
            location_id=location if location not in ('', None) else None,
            requires_base_role=data.get('requires_base_role') or None,
            is_active=data.get('is_active', True) is not False,
            permission_grants=frozenset(grants),
        )


@dataclass(frozen=True)
class ValidationResult:
    error: Optional[CustomRoleValidationError] = None
    base_role: Optional[Role] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self):
        if self.error is not None:
            raise self.error
        return self

    def __eq__(self, other):
        if not isinstance(other, ValidationResult):
            return NotImplemented
        return (self.base_role, type(self.error), getattr(self.error, 'detail', None)) == \
            (other.base_role, type(other.error), getattr(other.error, 'detail', None))


def validate(draft: CustomRoleDraft, standing: AuthorStanding) -> ValidationResult:
    standing = AuthorStanding(standing)
    if not (draft.name or '').strip():
        return ValidationResult(EmptyNameError())
    if draft.location_id in (None, ''):
        return ValidationResult(MissingLocationError())
    if not draft.permission_grants:
        return ValidationResult(NoPermissionsError())
    for key in sorted(draft.permission_grants):
        if not catalog.is_known(key):
            return ValidationResult(UnknownGrantError(key))
    base_role = None
    if draft.requires_base_role:
        base_role = Role.parse(draft.requires_base_role)
        if base_role is None:
            return ValidationResult(InvalidBaseRoleError(str(draft.requires_base_role)))
    # Sorted so the reported key is stable across calls.
    if base_role is not None:
        profile = profile_for(base_role)
        for key in sorted(draft.permission_grants):
            if not is_grantable(base_role, key, standing):
                reason = 'base' if key in profile.base_permissions else 'restricted'
                return ValidationResult(UnassignablePermissionError(key, reason), base_role)
    elif not standing.is_elevated:
        restricted = any_role_restrictions()
        for key in sorted(draft.permission_grants):
            if key in restricted:
                return ValidationResult(UnassignablePermissionError(key))
    return ValidationResult(None, base_role)


def serialize(role: CustomRole) -> Dict[str, Any]:
    keys = role.permission_keys
    return {
        'id': role.id,
        'name': role.name,
        'description': role.description or '',
        'location': role.location_id,
        'location_name': role.location.name if role.location else None,
        'requires_base_role': role.requires_base_role,
        'is_active': bool(role.is_active),
        'permissions': sorted(keys),
        'permissions_count': len(keys),
    }


class CustomRoleStore:
    """SQLAlchemy persistence for custom roles and their user assignments."""

    def __init__(self, session=None, locations: Optional[LocationDirectory] = None):
        self.session = session if session is not None else get_db()
        self.locations = locations or LocationDirectory(self.session)

    # --- reads ---
    def get(self, role_id: int) -> CustomRole:
        role = self.session.execute(select(CustomRole).where(CustomRole.id == role_id)).scalar_one_or_none()
        if role is None:
            raise CustomRoleNotFoundError()
        return role

    def list(self, location_id: Optional[int] = None, is_active: Optional[bool] = None,
             limit: int = 50, offset: int = 0) -> Tuple[List[CustomRole], int]:
        q = select(CustomRole)
        if location_id is not None:
            q = q.where(CustomRole.location_id == location_id)
        if is_active is not None:
            q = q.where(CustomRole.is_active.is_(is_active))
        total = self.session.execute(select(func.count()).select_from(q.subquery())).scalar_one()
        rows = self.session.execute(q.order_by(CustomRole.id.asc()).offset(offset).limit(limit)).scalars().all()
        return rows, total

    def grants_for(self, user_id: int) -> List[CustomRoleGrant]:
        rows = self.session.execute(
            select(CustomRole).join(UserCustomRole, UserCustomRole.custom_role_id == CustomRole.id)
            .where(UserCustomRole.user_id == user_id)
        ).scalars().all()
        return [CustomRoleGrant.from_model(r) for r in rows]

    # --- writes ---
    def _checked(self, draft: CustomRoleDraft, standing: AuthorStanding) -> Optional[Role]:
        result = validate(draft, standing).raise_for_error()
        if not self.locations.exists(draft.location_id):
            raise MissingLocationError(f'Location {draft.location_id} not found')
        return result.base_role

    def _apply(self, role: CustomRole, draft: CustomRoleDraft, base_role: Optional[Role]):
        role.name = draft.name.strip()
        role.description = draft.description or ''
        role.location_id = int(draft.location_id)
        role.requires_base_role = base_role.value if base_role else None
        role.is_active = bool(draft.is_active)

    def create(self, draft: CustomRoleDraft, standing: AuthorStanding, author_id: Optional[int] = None) -> CustomRole:
        base_role = self._checked(draft, standing)
        try:
            role = CustomRole(created_by=author_id)
            self._apply(role, draft, base_role)
            self.session.add(role)
            self.session.flush()
            for key in sorted(draft.permission_grants):
                self.session.add(CustomRolePermission(custom_role_id=role.id, permission_key=key))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        log.info('Custom role %s (%s) created with %d permissions', role.id, role.name, len(draft.permission_grants))
        return role

    def replace(self, role_id: int, draft: CustomRoleDraft, standing: AuthorStanding) -> CustomRole:
        role = self.get(role_id)
        base_role = self._checked(draft, standing)
        # All-or-nothing: metadata and grant set change together or not at all.
        try:
            # Bulk delete bypasses the ORM collection; drop the loaded one.
            self.session.expire(role, ['grants'])
            self._apply(role, draft, base_role)
            self.session.execute(delete(CustomRolePermission).where(CustomRolePermission.custom_role_id == role.id))
            for key in sorted(draft.permission_grants):
                self.session.add(CustomRolePermission(custom_role_id=role.id, permission_key=key))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(role)
        log.info('Custom role %s replaced with %d permissions', role.id, len(draft.permission_grants))
        return role

    def delete(self, role_id: int) -> CustomRole:
        role = self.get(role_id)
        try:
            self.session.delete(role)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return role

    def assign(self, user: User, role_ids: Iterable[int], standing: AuthorStanding) -> List[int]:
        """Replace the user's custom role assignments.

        Each role's grant set is checked against the assigner's standing with
        the same rules as authoring, so a role authored by a superuser cannot
        be handed out by an ordinary location head.
        """
        standing = AuthorStanding(standing)
        role_ids = sorted(set(role_ids))
        roles = [self.get(rid) for rid in role_ids]
        user_role = Role.parse(user.role)
        for r in roles:
            required = Role.parse(r.requires_base_role)
            if required is not None and required != user_role:
                raise BaseRoleMismatchError(required.value, user_role.value if user_role else None)
            self._check_assignable(r, required, standing)
        try:
            self.session.expire(user, ['user_custom_roles'])
            self.session.execute(delete(UserCustomRole).where(UserCustomRole.user_id == user.id))
            for rid in role_ids:
                self.session.add(UserCustomRole(user_id=user.id, custom_role_id=rid))
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        return role_ids

    @staticmethod
    def _check_assignable(role: CustomRole, required: Optional[Role], standing: AuthorStanding):
        keys = sorted(role.permission_keys)
        if required is not None:
            profile = profile_for(required)
            for key in keys:
                if not is_grantable(required, key, standing):
                    reason = 'base' if key in profile.base_permissions else 'restricted'
                    raise UnassignablePermissionError(key, reason)
        elif not standing.is_elevated:
            restricted = any_role_restrictions()
            for key in keys:
                if key in restricted:
                    raise UnassignablePermissionError(key)


__all__ = ['CustomRoleDraft', 'ValidationResult', 'validate', 'serialize', 'CustomRoleStore']
