#!/usr/bin/env python
"""Idempotent seed script for legacy codenames, groups, root location & initial admin.

Usage:
    python backend/scripts/seed_authz.py                # seed normally
    python backend/scripts/seed_authz.py --show-roles   # print base-role profiles (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run      # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --validate     # check groups only reference catalog keys
    python backend/scripts/seed_authz.py --export-json groups.json
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib
from sqlalchemy import select, text

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from storeroom import create_app, get_db  # type: ignore
from storeroom.models.authz import Base, LegacyPermission, Group, GroupPermission, Location, User
import storeroom.models.custom_role  # noqa: F401
import storeroom.models.audit  # noqa: F401
from storeroom.constants.permissions import LEGACY_CODENAMES, LEGACY_APP, is_known, legacy_codename_of, label_of
from storeroom.constants.roles import Role, ROLE_LABELS, ROLE_TO_GROUP, UNASSIGNABLE_PERMISSIONS
from storeroom.services.constraints import profile_for
from seeds.groups import GROUPS, DESCRIPTIONS, ROOT_LOCATION


def group_codenames(group_name: str):
    keys = GROUPS[group_name]
    if '*' in keys:
        return set(LEGACY_CODENAMES.values())
    return {legacy_codename_of(k) for k in keys if legacy_codename_of(k)}


def ensure_codenames(session):
    existing = {p.codename for p in session.execute(select(LegacyPermission)).scalars().all()}
    created = 0
    for key, codename in LEGACY_CODENAMES.items():
        if codename in existing:
            continue
        app_label, action = codename.split('.', 1)
        session.add(LegacyPermission(codename=codename, app_label=app_label, action=action, name=label_of(key)))
        existing.add(codename)
        created += 1
    return created


def ensure_groups(session):
    existing = {g.name: g for g in session.execute(select(Group)).scalars().all()}
    created = 0
    for name in GROUPS:
        if name not in existing:
            grp = Group(name=name, description=DESCRIPTIONS.get(name))
            session.add(grp)
            existing[name] = grp
            created += 1
    session.flush()

    perms_map = {p.codename: p for p in session.execute(select(LegacyPermission)).scalars()}
    for name, grp in existing.items():
        if name not in GROUPS:
            continue
        current = {gp.permission.codename for gp in grp.permissions}
        for codename in group_codenames(name) - current:
            if codename not in perms_map:
                print(f"[WARN] Missing codename referenced by group {name}: {codename}")
                continue
            session.add(GroupPermission(group=grp, permission=perms_map[codename]))
    return created


def ensure_root_location(session):
    loc = session.execute(select(Location).where(Location.code == ROOT_LOCATION['code'])).scalar_one_or_none()
    if not loc:
        loc = Location(name=ROOT_LOCATION['name'], code=ROOT_LOCATION['code'], parent_id=None)
        session.add(loc)
        session.flush()
        print(f"[INFO] Created root location {loc.code}")
    return loc


def ensure_initial_admin(session, root):
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    existing_admin = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if existing_admin:
        return
    user = User(
        name='Administrator', email=admin_email, is_superuser=True,
        role=Role.SYSTEM_ADMIN.value, responsible_location_id=root.id,
    )
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    grp = session.execute(select(Group).where(Group.name == 'System Admin')).scalar_one_or_none()
    if grp:
        session.execute(text("INSERT INTO user_groups (user_id, group_id) VALUES (:u, :g)"), {"u": user.id, "g": grp.id})
    print(f"[INFO] Created initial admin user {admin_email} with temporary password.")


def print_role_summary():
    name_w = max(len(ROLE_LABELS[r]) for r in Role)
    print(f"{'Role'.ljust(name_w)} |  Base | Unassignable")
    print('-' * (name_w + 40))
    for role in Role:
        profile = profile_for(role)
        print(f"{ROLE_LABELS[role].ljust(name_w)} | {str(len(profile.base_permissions)).rjust(5)} | "
              f"{', '.join(sorted(profile.unassignable_permissions)) or '-'}")


def build_group_codename_map(session):
    mapping = {}
    for grp in session.execute(select(Group)).scalars().all():
        mapping[grp.name] = sorted({gp.permission.codename for gp in grp.permissions})
    return mapping


def validate_seed_data():
    problems = []
    for name, keys in GROUPS.items():
        for k in keys:
            if k == '*':
                continue
            if not is_known(k):
                problems.append(f"Group '{name}' references unknown permission key: {k}")
            elif legacy_codename_of(k) is None:
                problems.append(f"Group '{name}' references key without legacy codename: {k}")
    for role, group in ROLE_TO_GROUP.items():
        for k in sorted(set(GROUPS.get(group, ())) & UNASSIGNABLE_PERMISSIONS[role]):
            problems.append(f"Group '{group}' grants {k}, which is unassignable for {role.value}")
    for codename in LEGACY_CODENAMES.values():
        if not codename.startswith(f'{LEGACY_APP}.'):
            problems.append(f"Codename outside '{LEGACY_APP}' app: {codename}")
    return problems


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed legacy authorization data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print base-role profiles after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export group->codenames JSON (to FILE or stdout if omitted)')
    p.add_argument('--validate', action='store_true', help='Validate seed data against the permission catalog; exits non-zero on problems')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        # Auto-create schema for bootstrap; in real env prefer alembic upgrade
        Base.metadata.create_all(session.get_bind())

        try:
            if args.validate:
                problems = validate_seed_data()
                if problems:
                    print('\n[VALIDATION] FAIL:')
                    for p in problems:
                        print(' -', p)
                    sys.exit(2)
                print('[VALIDATION] OK: All group references valid.')
            created_p = ensure_codenames(session)
            created_g = ensure_groups(session)
            root = ensure_root_location(session)
            ensure_initial_admin(session, root)
            group_map = build_group_codename_map(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Codenames would create: {created_p}, Groups would create: {created_g}")
            else:
                session.commit()
                print(f"[DONE] Codenames created: {created_p}, Groups created: {created_g}")
            if args.show_roles:
                print('\nBase Role Profiles:')
                print_role_summary()
            if args.export_json is not None:
                # Deterministic checksum for change detection
                canonical = json.dumps(group_map, sort_keys=True, separators=(',', ':'))
                payload = {
                    'groups': group_map,
                    'meta': {
                        'codenames_total': sum(len(v) for v in group_map.values()),
                        'groups_checksum_sha256': hashlib.sha256(canonical.encode('utf-8')).hexdigest(),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
