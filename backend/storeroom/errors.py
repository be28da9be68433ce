"""Authorization engine error taxonomy.

Every error is scoped to one evaluation or one role-authoring attempt.
``code`` is stable and safe to return to API clients.
"""
from __future__ import annotations
from typing import Optional


class AuthzError(Exception):
    code = 'AUTHZ_ERROR'
    status = 400

    def __init__(self, detail: Optional[str] = None):
        self.detail = detail or self.__class__.__doc__ or self.code
        super().__init__(self.detail)


class UnknownKeyError(AuthzError):
    """Permission key is not in the catalog."""
    code = 'UNKNOWN_PERMISSION_KEY'

    def __init__(self, key: str):
        self.key = key
        super().__init__(f'Unknown permission key: {key}')


class FactsUnavailableError(AuthzError):
    """Authorization facts could not be fetched."""
    code = 'FACTS_UNAVAILABLE'
    status = 403


# --- Custom role authoring ---

class CustomRoleValidationError(AuthzError):
    code = 'CUSTOM_ROLE_INVALID'


class EmptyNameError(CustomRoleValidationError):
    """Role name is required."""
    code = 'EMPTY_NAME'


class MissingLocationError(CustomRoleValidationError):
    """Location is required."""
    code = 'MISSING_LOCATION'


class NoPermissionsError(CustomRoleValidationError):
    """At least one permission must be selected."""
    code = 'NO_PERMISSIONS'


class MalformedDraftError(CustomRoleValidationError):
    """Custom role payload has the wrong shape."""
    code = 'MALFORMED_DRAFT'


class InvalidBaseRoleError(CustomRoleValidationError):
    code = 'INVALID_BASE_ROLE'

    def __init__(self, role: str):
        self.role = role
        super().__init__(f'Unknown base role: {role}')


class UnknownGrantError(CustomRoleValidationError, UnknownKeyError):
    """Draft grants a key that is not in the catalog."""
    code = 'UNKNOWN_PERMISSION_KEY'


class UnassignablePermissionError(CustomRoleValidationError):
    """Permission cannot be granted through this custom role by this author.

    ``reason`` is ``'base'`` when the key is already implied by the base role,
    ``'restricted'`` when it needs superuser or root location head standing.
    """
    code = 'UNASSIGNABLE_PERMISSION'

    def __init__(self, key: str, reason: str = 'restricted'):
        self.key = key
        self.reason = reason
        if reason == 'base':
            detail = f'{key} is a base permission of the selected role and cannot be granted'
        else:
            detail = f'{key} can only be assigned by ROOT location heads or System Admins'
        super().__init__(detail)


class BaseRoleMismatchError(AuthzError):
    code = 'BASE_ROLE_MISMATCH'

    def __init__(self, required: str, actual: Optional[str]):
        self.required = required
        self.actual = actual
        super().__init__(f'Custom role requires base role {required}, user has {actual or "none"}')


class CustomRoleNotFoundError(AuthzError):
    """Custom role not found."""
    code = 'CUSTOM_ROLE_NOT_FOUND'
    status = 404


__all__ = [
    'AuthzError', 'UnknownKeyError', 'FactsUnavailableError', 'CustomRoleValidationError',
    'EmptyNameError', 'MissingLocationError', 'NoPermissionsError', 'MalformedDraftError', 'InvalidBaseRoleError',
    'UnknownGrantError', 'UnassignablePermissionError', 'BaseRoleMismatchError',
    'CustomRoleNotFoundError',
]
