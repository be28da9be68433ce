import pytest
from storeroom.constants.roles import Role
from storeroom.models.audit import AuditLog
from storeroom.models.authz import Group
from storeroom.models.custom_role import CustomRole


@pytest.fixture()
def org(make_location):
    root = make_location(name='University')
    return root, make_location(parent=root, name='Physics Dept')


@pytest.fixture()
def admin(make_user, org):
    return make_user(role=Role.SYSTEM_ADMIN, is_superuser=True, location=org[0])


def _payload(location, /, **kw):
    body = {'name': 'Dispatch helper', 'location': location.id, 'permissions': ['can_view_users']}
    body.update(kw)
    return body


def test_create_custom_role_as_admin(client, admin, org, auth_headers, session):
    headers = auth_headers(admin)
    resp = client.post('/iam/custom-roles', json=_payload(org[1], description='helps'), headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['name'] == 'Dispatch helper'
    assert body['location'] == org[1].id
    assert body['location_name'] == 'Physics Dept'
    assert body['permissions'] == ['can_view_users']
    assert body['permissions_count'] == 1
    assert body['requires_base_role'] is None
    audits = session.query(AuditLog).filter(
        AuditLog.action == 'CUSTOM_ROLE.CREATE', AuditLog.entity_id == str(body['id'])
    ).all()
    assert audits and audits[0].actor_user_id == admin.id
    assert audits[0].facts_snapshot['standing'] == 'SUPERUSER'


def test_create_rejects_restricted_key_for_department_head(client, make_user, org, auth_headers):
    head = make_user(role=Role.LOCATION_HEAD, location=org[1])
    body = _payload(org[1], requires_base_role='STOCK_INCHARGE', permissions=['can_fill_central_register'])
    resp = client.post('/iam/custom-roles', json=body, headers=auth_headers(head))
    assert resp.status_code == 400
    err = resp.get_json()['error']
    assert err['status'] == 400
    assert err['code'] == 'UNASSIGNABLE_PERMISSION'
    assert err['title'] == 'UnassignablePermissionError'
    assert 'can_fill_central_register' in err['detail']


def test_root_location_head_may_grant_restricted_key(client, make_user, org, auth_headers):
    head = make_user(role=Role.LOCATION_HEAD, location=org[0])
    body = _payload(org[0], requires_base_role='STOCK_INCHARGE', permissions=['can_fill_central_register'])
    resp = client.post('/iam/custom-roles', json=body, headers=auth_headers(head))
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['requires_base_role'] == 'STOCK_INCHARGE'


def test_create_validation_errors(client, admin, org, auth_headers):
    headers = auth_headers(admin)
    cases = [
        (_payload(org[1], name='  '), 'EMPTY_NAME'),
        (_payload(org[1], location=None), 'MISSING_LOCATION'),
        (_payload(org[1], permissions=[]), 'NO_PERMISSIONS'),
        (_payload(org[1], permissions=['can_launch_rockets']), 'UNKNOWN_PERMISSION_KEY'),
        (_payload(org[1], requires_base_role='JANITOR'), 'INVALID_BASE_ROLE'),
        (_payload(org[1], location=999999), 'MISSING_LOCATION'),
    ]
    for body, code in cases:
        resp = client.post('/iam/custom-roles', json=body, headers=headers)
        assert resp.status_code == 400, (body, resp.get_json())
        assert resp.get_json()['error']['code'] == code


def test_create_rejects_malformed_bodies(client, admin, org, auth_headers, session):
    headers = auth_headers(admin)
    before = session.query(CustomRole).count()
    bodies = [
        _payload(org[1], permissions=[1, 'can_view_users']),
        _payload(org[1], permissions=[{'key': 'can_view_users'}]),
        _payload(org[1], permissions='can_view_users'),
        _payload(org[1], name=5),
        _payload(org[1], requires_base_role=['AUDITOR']),
        _payload(org[1], location={'id': org[1].id}),
        [_payload(org[1])],
    ]
    for body in bodies:
        resp = client.post('/iam/custom-roles', json=body, headers=headers)
        assert resp.status_code == 400, (body, resp.get_json())
        assert resp.get_json()['error']['code'] == 'MALFORMED_DRAFT'
    assert session.query(CustomRole).count() == before


def test_non_managers_cannot_author(client, make_user, org, auth_headers):
    auditor = make_user(role=Role.AUDITOR, location=org[1])
    resp = client.post('/iam/custom-roles', json=_payload(org[1]), headers=auth_headers(auditor))
    assert resp.status_code == 403
    assert resp.get_json()['error']['status'] == 403


def test_missing_token_is_unauthorized(client):
    assert client.get('/iam/custom-roles').status_code == 401


def test_replace_is_all_or_nothing(client, admin, org, auth_headers, session):
    headers = auth_headers(admin)
    role_id = client.post('/iam/custom-roles', json=_payload(org[1]), headers=headers).get_json()['id']

    bad = _payload(org[1], name='Renamed', permissions=['can_view_reports', 'can_launch_rockets'])
    resp = client.put(f'/iam/custom-roles/{role_id}', json=bad, headers=headers)
    assert resp.status_code == 400
    current = client.get(f'/iam/custom-roles/{role_id}', headers=headers).get_json()
    assert current['name'] == 'Dispatch helper'
    assert current['permissions'] == ['can_view_users']

    good = _payload(org[1], name='Renamed', permissions=['can_view_reports', 'can_export_data'])
    resp = client.put(f'/iam/custom-roles/{role_id}', json=good, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['name'] == 'Renamed'
    assert body['permissions'] == ['can_export_data', 'can_view_reports']
    entry = session.query(AuditLog).filter(
        AuditLog.action == 'CUSTOM_ROLE.REPLACE', AuditLog.entity_id == str(role_id)
    ).one()
    assert entry.meta['changes']['name'] == {'before': 'Dispatch helper', 'after': 'Renamed'}
    assert entry.meta['changes']['permissions']['after'] == ['can_export_data', 'can_view_reports']


def test_assignment_takes_effect_and_respects_base_role(client, admin, make_user, org, auth_headers):
    headers = auth_headers(admin)
    keeper = make_user(role=Role.STOCK_INCHARGE, location=org[1])
    keeper_headers = auth_headers(keeper)
    heads_only = client.post('/iam/custom-roles', json=_payload(
        org[1], name='Heads only', requires_base_role='LOCATION_HEAD', permissions=['can_export_data']
    ), headers=headers).get_json()
    anyone = client.post('/iam/custom-roles', json=_payload(
        org[1], name='Reports', permissions=['can_view_reports']
    ), headers=headers).get_json()

    resp = client.put(f'/iam/users/{keeper.id}/custom-roles', json={'custom_role_ids': [heads_only['id']]}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'BASE_ROLE_MISMATCH'

    perms = client.get('/iam/users/me/permissions', headers=keeper_headers).get_json()
    assert perms['can_issue_stock'] is True
    assert perms['can_view_reports'] is False

    resp = client.put(f'/iam/users/{keeper.id}/custom-roles', json={'custom_role_ids': [anyone['id']]}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['custom_role_ids'] == [anyone['id']]
    # same token, facts re-resolved on every request
    perms = client.get('/iam/users/me/permissions', headers=keeper_headers).get_json()
    assert perms['can_view_reports'] is True
    assert perms['role'] == 'STOCK_INCHARGE'

    # deactivating the role withdraws its grants
    body = _payload(org[1], name='Reports', permissions=['can_view_reports'], is_active=False)
    assert client.put(f"/iam/custom-roles/{anyone['id']}", json=body, headers=headers).status_code == 200
    perms = client.get('/iam/users/me/permissions', headers=keeper_headers).get_json()
    assert perms['can_view_reports'] is False


def test_assign_rejects_bad_payload(client, admin, auth_headers):
    resp = client.put(f'/iam/users/{admin.id}/custom-roles', json={'custom_role_ids': ['x']}, headers=auth_headers(admin))
    assert resp.status_code == 400


def test_assignment_checks_assigner_standing(client, admin, make_user, org, auth_headers):
    headers = auth_headers(admin)
    head = make_user(role=Role.LOCATION_HEAD, location=org[1])
    head_headers = auth_headers(head)
    keeper = make_user(role=Role.STOCK_INCHARGE, location=org[1])
    register = client.post('/iam/custom-roles', json=_payload(
        org[1], name='Register', requires_base_role='LOCATION_HEAD', permissions=['can_fill_central_register']
    ), headers=headers).get_json()
    approvals = client.post('/iam/custom-roles', json=_payload(
        org[1], name='Approvals', permissions=['can_approve_maintenance']
    ), headers=headers).get_json()

    resp = client.put(f'/iam/users/{head.id}/custom-roles', json={'custom_role_ids': [register['id']]}, headers=head_headers)
    assert resp.status_code == 400
    err = resp.get_json()['error']
    assert err['code'] == 'UNASSIGNABLE_PERMISSION'
    assert 'can_fill_central_register' in err['detail']
    assert client.get('/iam/users/me/permissions', headers=head_headers).get_json()['can_fill_central_register'] is False

    resp = client.put(f'/iam/users/{keeper.id}/custom-roles', json={'custom_role_ids': [approvals['id']]}, headers=head_headers)
    assert resp.status_code == 400
    assert resp.get_json()['error']['code'] == 'UNASSIGNABLE_PERMISSION'

    resp = client.put(f'/iam/users/{head.id}/custom-roles', json={'custom_role_ids': [register['id']]}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert client.get('/iam/users/me/permissions', headers=head_headers).get_json()['can_fill_central_register'] is True


def test_assignment_requires_assign_permission(client, make_user, org, auth_headers):
    keeper = make_user(role=Role.STOCK_INCHARGE, location=org[1])
    resp = client.put(f'/iam/users/{keeper.id}/custom-roles', json={'custom_role_ids': []}, headers=auth_headers(keeper))
    assert resp.status_code == 403
    head = make_user(role=Role.LOCATION_HEAD, location=org[1])
    resp = client.put(f'/iam/users/{keeper.id}/custom-roles', json={'custom_role_ids': []}, headers=auth_headers(head))
    assert resp.status_code == 200
    assert resp.get_json()['custom_role_ids'] == []



def test_delete_custom_role(client, admin, org, auth_headers, session):
    headers = auth_headers(admin)
    role_id = client.post('/iam/custom-roles', json=_payload(org[1], name='Temp'), headers=headers).get_json()['id']
    resp = client.delete(f'/iam/custom-roles/{role_id}', headers=headers)
    assert resp.status_code == 200
    missing = client.get(f'/iam/custom-roles/{role_id}', headers=headers)
    assert missing.status_code == 404
    assert missing.get_json()['error']['code'] == 'CUSTOM_ROLE_NOT_FOUND'
    assert session.query(AuditLog).filter(AuditLog.action == 'CUSTOM_ROLE.DELETE', AuditLog.entity_id == str(role_id)).count() == 1


def test_list_filters_and_pagination(client, admin, make_location, auth_headers, session):
    headers = auth_headers(admin)
    loc = make_location(name='Chemistry Dept')
    for i in range(3):
        client.post('/iam/custom-roles', json=_payload(loc, name=f'Role {i}', is_active=i != 2), headers=headers)
    resp = client.get(f'/iam/custom-roles?location={loc.id}&limit=2', headers=headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['pagination'] == {'total': 3, 'limit': 2, 'offset': 0, 'returned': 2}
    assert all(r['location'] == loc.id for r in body['data'])
    active = client.get(f'/iam/custom-roles?location={loc.id}&is_active=false', headers=headers).get_json()
    assert [r['name'] for r in active['data']] == ['Role 2']
    assert client.get('/iam/custom-roles?is_active=maybe', headers=headers).status_code == 400
    assert client.get('/iam/custom-roles?limit=abc', headers=headers).status_code == 400
    assert client.get('/iam/custom-roles?location=999999', headers=headers).status_code == 404
    loc.is_active = False
    session.commit()
    assert client.get(f'/iam/custom-roles?location={loc.id}', headers=headers).status_code == 404


def test_unavailable_facts_deny(client, make_user, org, auth_headers, session):
    head = make_user(role=Role.LOCATION_HEAD, location=org[0])
    headers = auth_headers(head)
    assert client.get('/iam/custom-roles', headers=headers).status_code == 200
    head.is_active = False
    session.commit()
    assert client.get('/iam/custom-roles', headers=headers).status_code == 403
    assert client.post('/iam/auth/login', json={'email': head.email, 'password': 'pw'}).status_code == 401


def test_role_profile_endpoint(client, admin, make_user, org, auth_headers):
    head = make_user(role=Role.LOCATION_HEAD, location=org[1])
    resp = client.get('/iam/roles/STOCK_INCHARGE/permissions', headers=auth_headers(head))
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['base_permissions']['can_issue_stock'] is True
    assert 'can_fill_central_register' in body['unassignable_permissions']
    elevated = client.get('/iam/roles/STOCK_INCHARGE/permissions', headers=auth_headers(admin)).get_json()
    assert elevated['unassignable_permissions'] == []
    assert client.get('/iam/roles/JANITOR/permissions', headers=auth_headers(admin)).status_code == 404


def test_catalog_and_roles_listing(client, make_user, auth_headers):
    headers = auth_headers(make_user())
    grouped = client.get('/iam/permissions', headers=headers).get_json()['data']
    assert sum(len(c['permissions']) for c in grouped) == 36
    roles = client.get('/iam/roles', headers=headers).get_json()['data']
    assert {r['value'] for r in roles} == {'SYSTEM_ADMIN', 'LOCATION_HEAD', 'STOCK_INCHARGE', 'AUDITOR'}


def test_group_membership_grants_role(client, admin, make_user, org, auth_headers, session):
    if not session.query(Group).filter_by(name='Location Head').one_or_none():
        session.add(Group(name='Location Head'))
        session.commit()
    user = make_user(location=org[1])
    user_headers = auth_headers(user)
    assert client.post('/iam/custom-roles', json=_payload(org[1]), headers=user_headers).status_code == 403

    resp = client.put(f'/iam/users/{user.id}/groups', json={'groups': ['Location Head']}, headers=auth_headers(admin))
    assert resp.status_code == 200, resp.get_json()
    assert client.post('/iam/custom-roles', json=_payload(org[1], name='Via group'), headers=user_headers).status_code == 201
    me = client.get('/iam/auth/me', headers=user_headers).get_json()
    assert me['groups'] == ['Location Head']
    assert me['can_manage_custom_roles'] is True

    bad = client.put(f'/iam/users/{user.id}/groups', json={'groups': ['Nope']}, headers=auth_headers(admin))
    assert bad.status_code == 400


def test_audit_log_listing_requires_system_admin(client, admin, make_user, auth_headers):
    assert client.get('/iam/audit/logs', headers=auth_headers(make_user(role=Role.AUDITOR))).status_code == 403
    resp = client.get('/iam/audit/logs?limit=5', headers=auth_headers(admin))
    assert resp.status_code == 200
    assert resp.get_json()['pagination']['limit'] == 5
