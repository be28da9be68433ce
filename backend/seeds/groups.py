"""Seed definitions for legacy groups & their codename bundles.
(Consumed by scripts/seed_authz.py; single source of truth for group composition.)

Groups are listed by permission key; the seed script maps each key to its
legacy codename and skips keys that have none. A role group never holds a
key its role marks unassignable.
"""

_VIEW = [
    'can_view_inspection_certificates', 'can_view_inventory', 'can_view_items',
    'can_view_locations', 'can_view_maintenance', 'can_view_reports',
]

GROUPS = {
    'System Admin': ['*'],  # implies every codename
    'Location Head': _VIEW + [
        'can_initiate_inspection_certificates', 'can_edit_inspection_certificates',
        'can_download_inspection_pdf',
        'can_edit_locations',
        'can_view_users', 'can_create_users', 'can_edit_users', 'can_assign_custom_roles',
        'can_approve_maintenance', 'can_fulfill_inter_store_requests', 'can_export_data',
    ],
    'Stock Incharge': _VIEW + [
        'can_fill_stock_details', 'can_create_stock_entries', 'can_issue_stock',
        'can_receive_stock', 'can_transfer_stock', 'can_acknowledge_stock', 'can_return_stock',
        'can_edit_items',
        'can_create_maintenance', 'can_complete_maintenance',
        'can_create_inter_store_requests', 'can_fulfill_inter_store_requests',
    ],
    'Central Store Incharge': ['can_fill_central_register'],
    'Auditor': _VIEW + ['can_review_as_auditor', 'can_download_inspection_pdf', 'can_export_data'],
    'Viewer': _VIEW,
}

DESCRIPTIONS = {
    'System Admin': 'Full access across every location',
    'Location Head': 'Heads a location and its sub-locations',
    'Stock Incharge': 'Runs stock operations at a store',
    'Central Store Incharge': 'Runs the central store register',
    'Auditor': 'Reviews inspection certificates',
    'Viewer': 'Read-only access',
}

ROOT_LOCATION = {'name': 'Head Office', 'code': 'HQ'}
