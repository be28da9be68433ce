"""Fixed base roles, their group names, and their permission profiles."""
from __future__ import annotations
import enum
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional

from storeroom.constants.permissions import ALL_PERMISSION_KEYS


class Role(str, enum.Enum):
    SYSTEM_ADMIN = 'SYSTEM_ADMIN'
    LOCATION_HEAD = 'LOCATION_HEAD'
    STOCK_INCHARGE = 'STOCK_INCHARGE'
    AUDITOR = 'AUDITOR'

    @classmethod
    def parse(cls, value) -> Optional['Role']:
        """Role for ``value`` (Role or name string); None when empty or unknown."""
        if value is None or value == '':
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).upper())
        except ValueError:
            return None


ROLE_LABELS: Mapping[Role, str] = MappingProxyType({
    Role.SYSTEM_ADMIN: 'System Admin',
    Role.LOCATION_HEAD: 'Location Head',
    Role.STOCK_INCHARGE: 'Stock Incharge',
    Role.AUDITOR: 'Auditor',
})

# Role <-> group name. Both directions come from this one table.
ROLE_TO_GROUP: Mapping[Role, str] = MappingProxyType({
    Role.SYSTEM_ADMIN: 'System Admin',
    Role.LOCATION_HEAD: 'Location Head',
    Role.STOCK_INCHARGE: 'Stock Incharge',
    Role.AUDITOR: 'Auditor',
})
GROUP_TO_ROLE: Mapping[str, Role] = MappingProxyType({g: r for r, g in ROLE_TO_GROUP.items()})

CENTRAL_STORE_INCHARGE_GROUP = 'Central Store Incharge'
VIEWER_GROUP = 'Viewer'


def group_for_role(role: Role) -> str:
    return ROLE_TO_GROUP[role]


def role_for_group(group_name: str) -> Optional[Role]:
    return GROUP_TO_ROLE.get(group_name)


# --- Role permission profiles ---
# base: always on for holders of the role, shown locked in authoring forms.
# unassignable: may only be added on top of the role by a superuser or ROOT location head.

_CROSS_LOCATION_ADMIN = {
    'can_create_locations',
    'can_delete_locations',
    'can_delete_items',
}

_BASE: Dict[Role, FrozenSet[str]] = {
    Role.SYSTEM_ADMIN: ALL_PERMISSION_KEYS,
    Role.LOCATION_HEAD: frozenset({
        'can_view_inspection_certificates',
        'can_initiate_inspection_certificates',
        'can_edit_inspection_certificates',
        'can_submit_inspection_stage',
        'can_download_inspection_pdf',
        'can_view_inventory',
        'can_acknowledge_stock',
        'can_view_items',
        'can_view_locations',
        'can_view_users',
        'can_create_users',
        'can_edit_users',
        'can_assign_custom_roles',
        'can_view_maintenance',
        'can_approve_maintenance',
        'can_view_reports',
    }),
    Role.STOCK_INCHARGE: frozenset({
        'can_view_inspection_certificates',
        'can_submit_inspection_stage',
        'can_fill_stock_details',
        'can_view_inventory',
        'can_create_stock_entries',
        'can_issue_stock',
        'can_receive_stock',
        'can_transfer_stock',
        'can_acknowledge_stock',
        'can_return_stock',
        'can_view_items',
        'can_view_locations',
        'can_view_maintenance',
        'can_create_maintenance',
        'can_create_inter_store_requests',
        'can_fulfill_inter_store_requests',
        'can_acknowledge_inter_store_requests',
    }),
    Role.AUDITOR: frozenset({
        'can_view_inspection_certificates',
        'can_review_as_auditor',
        'can_download_inspection_pdf',
        'can_view_inventory',
        'can_view_items',
        'can_view_locations',
        'can_view_maintenance',
        'can_view_reports',
        'can_export_data',
    }),
}

_UNASSIGNABLE: Dict[Role, FrozenSet[str]] = {
    Role.SYSTEM_ADMIN: frozenset(),
    Role.LOCATION_HEAD: frozenset(_CROSS_LOCATION_ADMIN | {
        'can_fill_central_register',
        'can_review_as_auditor',
        'can_create_items',
    }),
    Role.STOCK_INCHARGE: frozenset(_CROSS_LOCATION_ADMIN | {
        'can_fill_central_register',
        'can_review_as_auditor',
        'can_create_items',
        'can_create_users',
        'can_edit_users',
        'can_assign_custom_roles',
    }),
    # Auditors review what others record; they may not also record it.
    Role.AUDITOR: frozenset(_CROSS_LOCATION_ADMIN | {
        'can_fill_central_register',
        'can_fill_stock_details',
        'can_issue_stock',
        'can_transfer_stock',
        'can_create_items',
        'can_create_users',
        'can_edit_users',
        'can_assign_custom_roles',
        'can_approve_maintenance',
    }),
}


def _check_profiles():
    for table_name, table in (('base', _BASE), ('unassignable', _UNASSIGNABLE)):
        missing_roles = [r for r in Role if r not in table]
        if missing_roles:
            raise RuntimeError(f'{table_name} profile table misses roles: {missing_roles}')
        for role, keys in table.items():
            unknown = keys - ALL_PERMISSION_KEYS
            if unknown:
                raise RuntimeError(f'{table_name} profile of {role.value} references unknown keys: {sorted(unknown)}')


_check_profiles()

BASE_PERMISSIONS: Mapping[Role, FrozenSet[str]] = MappingProxyType(_BASE)
UNASSIGNABLE_PERMISSIONS: Mapping[Role, FrozenSet[str]] = MappingProxyType(_UNASSIGNABLE)


__all__ = [
    'Role', 'ROLE_LABELS', 'ROLE_TO_GROUP', 'GROUP_TO_ROLE', 'CENTRAL_STORE_INCHARGE_GROUP',
    'VIEWER_GROUP', 'group_for_role', 'role_for_group', 'BASE_PERMISSIONS', 'UNASSIGNABLE_PERMISSIONS',
]
