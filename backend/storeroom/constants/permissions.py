"""Permission catalog: every permission key the back office knows about.

The catalog is closed. A key that is not listed here never grants access,
even when stored data carries a true flag for it.
Extend cautiously; never rename keys silently, add new ones and migrate.
"""
from __future__ import annotations
import enum
from types import MappingProxyType
from typing import Dict, FrozenSet, List, Mapping, NamedTuple, Optional

from storeroom.errors import UnknownKeyError


class Category(str, enum.Enum):
    INSPECTIONS = 'inspections'
    STOCK = 'stock'
    ITEMS = 'items'
    LOCATIONS = 'locations'
    USERS = 'users'
    MAINTENANCE = 'maintenance'
    INTER_STORE = 'interStore'
    REPORTS = 'reports'


class CategoryMeta(NamedTuple):
    label: str
    icon: str
    description: str


_CATEGORY_META: Dict[Category, CategoryMeta] = {
    Category.INSPECTIONS: CategoryMeta('Inspection Certificates', 'FileText', 'Manage inspection certificates and approval workflows'),
    Category.STOCK: CategoryMeta('Stock & Inventory', 'Package', 'Manage stock entries, transfers, and inventory operations'),
    Category.ITEMS: CategoryMeta('Items Management', 'Box', 'Create and manage item catalog'),
    Category.LOCATIONS: CategoryMeta('Location Management', 'MapPin', 'Manage organizational locations and hierarchy'),
    Category.USERS: CategoryMeta('User Management', 'Users', 'Manage users and role assignments'),
    Category.MAINTENANCE: CategoryMeta('Maintenance', 'Wrench', 'Manage maintenance schedules and approvals'),
    Category.INTER_STORE: CategoryMeta('Inter-Store Requests', 'ArrowRightLeft', 'Handle transfers between stores'),
    Category.REPORTS: CategoryMeta('Reports & Export', 'BarChart3', 'View reports and export data'),
}


class PermissionDef(NamedTuple):
    key: str
    category: Category
    label: str
    legacy_codename: Optional[str]


LEGACY_APP = 'inventory'


def _perm(key: str, category: Category, label: str, codename: Optional[str] = None) -> PermissionDef:
    return PermissionDef(key, category, label, f'{LEGACY_APP}.{codename}' if codename else None)


# Order matters: it is the display order inside each category.
_DEFINITIONS: List[PermissionDef] = [
    # Inspection certificates
    _perm('can_view_inspection_certificates', Category.INSPECTIONS, 'View Inspection Certificates', 'view_inspectioncertificate'),
    _perm('can_initiate_inspection_certificates', Category.INSPECTIONS, 'Initiate/Create Inspections', 'initiate_inspectioncertificate'),
    _perm('can_edit_inspection_certificates', Category.INSPECTIONS, 'Edit Inspection Certificates', 'change_inspectioncertificate'),
    _perm('can_submit_inspection_stage', Category.INSPECTIONS, 'Submit to Next Stage'),
    _perm('can_fill_stock_details', Category.INSPECTIONS, 'Fill Stock Details (Stage 2)', 'fill_stock_details'),
    _perm('can_fill_central_register', Category.INSPECTIONS, 'Fill Central Register (Stage 3)', 'fill_central_register'),
    _perm('can_review_as_auditor', Category.INSPECTIONS, 'Review as Auditor (Stage 4)', 'review_as_auditor'),
    _perm('can_download_inspection_pdf', Category.INSPECTIONS, 'Download Inspection PDFs', 'download_inspection_pdf'),
    # Stock / inventory
    _perm('can_view_inventory', Category.STOCK, 'View Inventory', 'view_iteminstance'),
    _perm('can_create_stock_entries', Category.STOCK, 'Create Stock Entries', 'add_stockentry'),
    _perm('can_issue_stock', Category.STOCK, 'Issue Stock', 'issue_stock'),
    _perm('can_receive_stock', Category.STOCK, 'Receive Stock', 'receive_stock'),
    _perm('can_transfer_stock', Category.STOCK, 'Transfer Stock', 'transfer_stock'),
    _perm('can_acknowledge_stock', Category.STOCK, 'Acknowledge Stock Transfers', 'acknowledge_stock'),
    _perm('can_return_stock', Category.STOCK, 'Return Stock', 'return_stock'),
    # Items
    _perm('can_view_items', Category.ITEMS, 'View Items', 'view_item'),
    _perm('can_create_items', Category.ITEMS, 'Create Items', 'add_item'),
    _perm('can_edit_items', Category.ITEMS, 'Edit Items', 'change_item'),
    _perm('can_delete_items', Category.ITEMS, 'Delete Items', 'delete_item'),
    # Locations
    _perm('can_view_locations', Category.LOCATIONS, 'View Locations', 'view_location'),
    _perm('can_create_locations', Category.LOCATIONS, 'Create Locations', 'add_location'),
    _perm('can_edit_locations', Category.LOCATIONS, 'Edit Locations', 'change_location'),
    _perm('can_delete_locations', Category.LOCATIONS, 'Delete Locations', 'delete_location'),
    # Users
    _perm('can_view_users', Category.USERS, 'View Users', 'view_userprofile'),
    _perm('can_create_users', Category.USERS, 'Create Users', 'add_userprofile'),
    _perm('can_edit_users', Category.USERS, 'Edit Users', 'change_userprofile'),
    _perm('can_assign_custom_roles', Category.USERS, 'Assign Custom Roles', 'assign_permissions'),
    # Maintenance
    _perm('can_view_maintenance', Category.MAINTENANCE, 'View Maintenance Records', 'view_maintenancerecord'),
    _perm('can_create_maintenance', Category.MAINTENANCE, 'Create Maintenance Records', 'add_maintenancerecord'),
    _perm('can_complete_maintenance', Category.MAINTENANCE, 'Complete Maintenance Tasks', 'complete_maintenance'),
    _perm('can_approve_maintenance', Category.MAINTENANCE, 'Approve Maintenance', 'approve_maintenance'),
    # Inter-store requests
    _perm('can_create_inter_store_requests', Category.INTER_STORE, 'Create Inter-Store Requests', 'add_interstorerequest'),
    _perm('can_fulfill_inter_store_requests', Category.INTER_STORE, 'Fulfill Inter-Store Requests', 'change_interstorerequest'),
    _perm('can_acknowledge_inter_store_requests', Category.INTER_STORE, 'Acknowledge Inter-Store Requests'),
    # Reports
    _perm('can_view_reports', Category.REPORTS, 'View Reports', 'view_all_reports'),
    _perm('can_export_data', Category.REPORTS, 'Export Data', 'export_all_data'),
]


def _build_catalog(defs: List[PermissionDef]) -> Mapping[str, PermissionDef]:
    catalog: Dict[str, PermissionDef] = {}
    for d in defs:
        if not isinstance(d.category, Category):
            raise RuntimeError(f'Permission {d.key} has invalid category {d.category!r}')
        if d.key in catalog:
            raise RuntimeError(f'Duplicate permission key: {d.key}')
        catalog[d.key] = d
    missing_meta = [c for c in Category if c not in _CATEGORY_META]
    if missing_meta:
        raise RuntimeError(f'Categories without metadata: {missing_meta}')
    return MappingProxyType(catalog)


CATALOG: Mapping[str, PermissionDef] = _build_catalog(_DEFINITIONS)
ALL_PERMISSION_KEYS: FrozenSet[str] = frozenset(CATALOG)
CATEGORY_META: Mapping[Category, CategoryMeta] = MappingProxyType(dict(_CATEGORY_META))
LEGACY_CODENAMES: Mapping[str, str] = MappingProxyType(
    {d.key: d.legacy_codename for d in _DEFINITIONS if d.legacy_codename}
)
# Several keys may share a codename; the first registered key wins the reverse lookup.
_KEY_BY_CODENAME: Dict[str, str] = {}
for _d in _DEFINITIONS:
    if _d.legacy_codename and _d.legacy_codename not in _KEY_BY_CODENAME:
        _KEY_BY_CODENAME[_d.legacy_codename] = _d.key


def all_keys() -> FrozenSet[str]:
    return ALL_PERMISSION_KEYS


def is_known(key: str) -> bool:
    return key in CATALOG


def category_of(key: str) -> Category:
    try:
        return CATALOG[key].category
    except KeyError:
        raise UnknownKeyError(key) from None


def label_of(key: str) -> str:
    try:
        return CATALOG[key].label
    except KeyError:
        raise UnknownKeyError(key) from None


def legacy_codename_of(key: str) -> Optional[str]:
    """Legacy ``app.action_model`` codename for ``key``; None when it has no counterpart or is unknown."""
    return LEGACY_CODENAMES.get(key)


def key_for_codename(codename: str) -> Optional[str]:
    return _KEY_BY_CODENAME.get(codename)


def keys_in(category: Category) -> List[str]:
    return [d.key for d in _DEFINITIONS if d.category is category]


def category_meta(category: Category) -> CategoryMeta:
    return CATEGORY_META[Category(category)]


def grouped_catalog() -> List[dict]:
    """Catalog grouped by category, in display order (JSON-safe)."""
    out = []
    for cat in Category:
        meta = CATEGORY_META[cat]
        out.append({
            'category': cat.value,
            'label': meta.label,
            'icon': meta.icon,
            'description': meta.description,
            'permissions': [
                {'key': k, 'label': CATALOG[k].label, 'legacy_codename': CATALOG[k].legacy_codename}
                for k in keys_in(cat)
            ],
        })
    return out


__all__ = [
    'Category', 'CategoryMeta', 'PermissionDef', 'CATALOG', 'ALL_PERMISSION_KEYS', 'CATEGORY_META',
    'LEGACY_CODENAMES', 'LEGACY_APP', 'all_keys', 'is_known', 'category_of', 'label_of',
    'legacy_codename_of', 'key_for_codename', 'keys_in', 'category_meta', 'grouped_catalog',
]
