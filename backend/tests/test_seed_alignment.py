import importlib.util, pathlib

from storeroom.constants.permissions import LEGACY_CODENAMES, is_known
from storeroom.constants.roles import (
    Role, ROLE_TO_GROUP, UNASSIGNABLE_PERMISSIONS, CENTRAL_STORE_INCHARGE_GROUP, VIEWER_GROUP,
)
from storeroom.models.authz import Group, LegacyPermission
from seeds.groups import GROUPS

SCRIPT = pathlib.Path(__file__).resolve().parents[1] / 'scripts' / 'seed_authz.py'


def _load_seed_script():
    spec = importlib.util.spec_from_file_location('seed_authz', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_seed_groups_cover_every_role_group():
    expected = set(ROLE_TO_GROUP.values()) | {CENTRAL_STORE_INCHARGE_GROUP, VIEWER_GROUP}
    assert set(GROUPS) == expected


def test_seed_groups_reference_catalog_keys():
    for name, keys in GROUPS.items():
        unknown = [k for k in keys if k != '*' and not is_known(k)]
        assert not unknown, f"Group {name} references unknown keys: {unknown}"


def test_seed_script_validation_passes():
    assert _load_seed_script().validate_seed_data() == []


def test_seed_is_idempotent(session):
    seed = _load_seed_script()
    seed.ensure_codenames(session)
    seed.ensure_groups(session)
    session.commit()
    assert seed.ensure_codenames(session) == 0
    assert seed.ensure_groups(session) == 0
    session.commit()
    codenames = {p.codename for p in session.query(LegacyPermission).all()}
    assert set(LEGACY_CODENAMES.values()) <= codenames
    admin = session.query(Group).filter_by(name='System Admin').one()
    assert {gp.permission.codename for gp in admin.permissions} == set(LEGACY_CODENAMES.values())


def test_role_groups_hold_no_unassignable_keys():
    for role, group in ROLE_TO_GROUP.items():
        overlap = set(GROUPS[group]) & UNASSIGNABLE_PERMISSIONS[role]
        assert not overlap, f"Group {group} grants keys unassignable for {role.value}: {sorted(overlap)}"


def test_seeded_role_groups_grant_no_unassignable_codenames(session):
    seed = _load_seed_script()
    seed.ensure_codenames(session)
    seed.ensure_groups(session)
    session.commit()
    for role, group in ROLE_TO_GROUP.items():
        if role is Role.SYSTEM_ADMIN:
            continue
        codenames = {gp.permission.codename for gp in session.query(Group).filter_by(name=group).one().permissions}
        leaked = {k for k in UNASSIGNABLE_PERMISSIONS[role] if LEGACY_CODENAMES.get(k) in codenames}
        assert not leaked, f"{group} seeds codenames for {sorted(leaked)}"
