import pytest
from storeroom.constants import permissions as catalog
from storeroom.constants.permissions import Category
from storeroom.errors import UnknownKeyError


def test_catalog_is_closed_and_complete():
    keys = catalog.all_keys()
    assert len(keys) == 36
    assert all(k.startswith('can_') for k in keys)
    # every key belongs to exactly one category
    by_cat = [k for cat in Category for k in catalog.keys_in(cat)]
    assert sorted(by_cat) == sorted(keys)


def test_category_and_label_lookup():
    assert catalog.category_of('can_issue_stock') is Category.STOCK
    assert catalog.category_of('can_acknowledge_inter_store_requests') is Category.INTER_STORE
    assert catalog.label_of('can_view_locations') == 'View Locations'


def test_unknown_key_lookup_raises():
    with pytest.raises(UnknownKeyError) as exc:
        catalog.category_of('can_launch_rockets')
    assert exc.value.key == 'can_launch_rockets'
    assert not catalog.is_known('can_launch_rockets')


def test_legacy_codename_mapping():
    assert catalog.legacy_codename_of('can_view_locations') == 'inventory.view_location'
    assert catalog.key_for_codename('inventory.view_location') == 'can_view_locations'
    # keys without a codename counterpart
    assert catalog.legacy_codename_of('can_submit_inspection_stage') is None
    assert catalog.legacy_codename_of('not_a_key') is None
    assert catalog.key_for_codename('inventory.unknown') is None


def test_every_category_has_metadata():
    for cat in Category:
        meta = catalog.category_meta(cat)
        assert meta.label and meta.icon and meta.description
    assert catalog.category_meta('interStore').label == 'Inter-Store Requests'


def test_grouped_catalog_display_order():
    grouped = catalog.grouped_catalog()
    assert [g['category'] for g in grouped] == [c.value for c in Category]
    inspections = grouped[0]['permissions']
    assert inspections[0]['key'] == 'can_view_inspection_certificates'
    assert sum(len(g['permissions']) for g in grouped) == 36
