import pytest
from storeroom.errors import (
    EmptyNameError, MissingLocationError, NoPermissionsError, UnknownGrantError, UnknownKeyError,
    InvalidBaseRoleError, UnassignablePermissionError,
)
from storeroom.services.constraints import AuthorStanding
from storeroom.services.custom_roles import CustomRoleDraft, validate


def _draft(**kw):
    base = dict(name='Dispatch helper', location_id=1, permission_grants=frozenset({'can_view_users'}))
    base.update(kw)
    return CustomRoleDraft(**base)


def test_stock_incharge_draft_rejects_central_register_for_ordinary_author():
    draft = _draft(requires_base_role='STOCK_INCHARGE', permission_grants=frozenset({'can_fill_central_register'}))
    result = validate(draft, AuthorStanding.ORDINARY)
    assert not result.ok
    assert isinstance(result.error, UnassignablePermissionError)
    assert result.error.key == 'can_fill_central_register'
    assert result.error.reason == 'restricted'
    with pytest.raises(UnassignablePermissionError):
        result.raise_for_error()


@pytest.mark.parametrize('standing', [AuthorStanding.SUPERUSER, AuthorStanding.ROOT_LOCATION_HEAD])
def test_elevated_author_may_grant_restricted_key(standing):
    draft = _draft(requires_base_role='STOCK_INCHARGE', permission_grants=frozenset({'can_fill_central_register'}))
    result = validate(draft, standing)
    assert result.ok
    assert result.base_role.value == 'STOCK_INCHARGE'


def test_empty_grants_rejected_whatever_else_is_wrong():
    assert isinstance(validate(_draft(permission_grants=frozenset()), AuthorStanding.SUPERUSER).error, NoPermissionsError)
    # name & location checked first
    assert isinstance(validate(_draft(name='  ', permission_grants=frozenset()), AuthorStanding.ORDINARY).error, EmptyNameError)
    assert isinstance(validate(_draft(location_id=None, permission_grants=frozenset()), AuthorStanding.ORDINARY).error, MissingLocationError)


def test_checks_run_in_order():
    draft = _draft(
        name='', location_id=None,
        permission_grants=frozenset({'can_launch_rockets'}), requires_base_role='JANITOR',
    )
    assert isinstance(validate(draft, AuthorStanding.ORDINARY).error, EmptyNameError)
    draft = _draft(permission_grants=frozenset({'can_launch_rockets'}), requires_base_role='JANITOR')
    err = validate(draft, AuthorStanding.ORDINARY).error
    assert isinstance(err, UnknownGrantError) and isinstance(err, UnknownKeyError)
    err = validate(_draft(requires_base_role='JANITOR'), AuthorStanding.ORDINARY).error
    assert isinstance(err, InvalidBaseRoleError)


def test_base_permission_in_grants_is_rejected():
    draft = _draft(requires_base_role='STOCK_INCHARGE', permission_grants=frozenset({'can_issue_stock', 'can_view_users'}))
    for standing in AuthorStanding:
        err = validate(draft, standing).error
        assert isinstance(err, UnassignablePermissionError)
        assert err.key == 'can_issue_stock' and err.reason == 'base'


def test_restricted_keys_rejected_not_stripped():
    draft = _draft(
        requires_base_role='STOCK_INCHARGE',
        permission_grants=frozenset({'can_view_users', 'can_fill_central_register'}),
    )
    result = validate(draft, AuthorStanding.ORDINARY)
    assert not result.ok
    # draft untouched
    assert draft.permission_grants == {'can_view_users', 'can_fill_central_register'}


def test_any_role_draft_checked_against_union_for_ordinary_authors():
    draft = _draft(permission_grants=frozenset({'can_review_as_auditor'}))
    err = validate(draft, AuthorStanding.ORDINARY).error
    assert isinstance(err, UnassignablePermissionError)
    assert err.key == 'can_review_as_auditor'
    assert validate(draft, AuthorStanding.SUPERUSER).ok
    assert validate(_draft(), AuthorStanding.ORDINARY).ok


def test_validation_is_idempotent():
    for draft in (
        _draft(requires_base_role='STOCK_INCHARGE', permission_grants=frozenset({'can_fill_central_register', 'can_view_users'})),
        _draft(name=''),
        _draft(),
    ):
        assert validate(draft, AuthorStanding.ORDINARY) == validate(draft, AuthorStanding.ORDINARY)


def test_draft_from_form_payload():
    draft = CustomRoleDraft.from_payload({
        'name': 'Night shift',
        'location': 4,
        'requires_base_role': '',
        'can_view_users': True,
        'can_export_data': False,
        'permissions': ['can_view_reports'],
    })
    assert draft.location_id == 4
    assert draft.requires_base_role is None
    assert draft.permission_grants == {'can_view_users', 'can_view_reports'}
    assert draft.is_active
    assert CustomRoleDraft.from_payload({'location': ''}).location_id is None
