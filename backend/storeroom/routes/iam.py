from flask import Blueprint, request, abort, g
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select, delete
from storeroom import get_db
from storeroom.models.authz import User, Group, UserGroup
from storeroom.models.audit import AuditLog
from storeroom.config.pagination import normalize_pagination
from storeroom.constants.permissions import grouped_catalog
from storeroom.constants.roles import Role, ROLE_LABELS, ROLE_TO_GROUP
from storeroom.decorators.audit import audit_log
from storeroom.decorators.auth import (
    current_facts, require_any_permission, require_custom_role_manager, require_permissions, require_role,
)
from storeroom.errors import FactsUnavailableError
from storeroom.services import policy
from storeroom.services.audit import add_audit
from storeroom.services.constraints import AuthorStanding, profile_payload
from storeroom.services.custom_roles import CustomRoleDraft, CustomRoleStore, serialize
from storeroom.services.locations import LocationDirectory
from storeroom.services.profile import resolve_user_facts

iam_bp = Blueprint('iam', __name__)


def _standing() -> AuthorStanding:
    current_facts()
    return AuthorStanding(g.authz_standing)


def _pagination():
    try:
        return normalize_pagination(request.args.get('limit'), request.args.get('offset'))
    except ValueError as e:
        abort(400, description=str(e))


def _bool_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return None
    if raw.lower() in ('1', 'true', 'yes'):
        return True
    if raw.lower() in ('0', 'false', 'no'):
        return False
    abort(400, description=f'{name} must be boolean')


def _int_arg(name: str):
    raw = request.args.get(name)
    if raw is None or raw == '':
        return None
    try:
        return int(raw)
    except ValueError:
        abort(400, description=f'{name} must be int')


def request_user_id() -> int:
    # Identity stored as string, cast back to int for DB lookup
    return int(get_jwt_identity())


def _get_user(user_id: int) -> User:
    user = get_db().execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if not user:
        abort(404)
    return user


# --- Auth ---

@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    email = data.get('email'); password = data.get('password')
    if not email or not password:
        abort(400, description='email & password required')
    session = get_db()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not user.verify_password(password):
        abort(401, description='invalid credentials')
    try:
        facts = resolve_user_facts(user.id, session)
    except FactsUnavailableError:
        abort(401, description='account inactive')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=facts.to_claims())
    return {'access_token': token}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    facts = current_facts()
    user = _get_user(request_user_id())
    body = {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'locale': user.locale,
        'custom_roles': [r.custom_role.name for r in user.user_custom_roles],
        'root_standing': policy.root_standing(facts),
        'author_standing': g.authz_standing,
        'can_manage_custom_roles': policy.can_manage_custom_roles(facts),
    }
    body.update(facts.to_claims())
    return body


@iam_bp.get('/users/me/permissions')
@jwt_required()
def my_permissions():
    facts = current_facts()
    claims = facts.to_claims()
    body = dict(policy.effective_permissions(facts))
    body.update({
        'is_superuser': facts.is_superuser,
        'role': claims['role'],
        'groups': claims['groups'],
        'django_permissions': claims['codenames'],
        'is_main_store_incharge': facts.is_main_store_incharge,
        'is_central_store_incharge': policy.is_central_store_incharge(facts),
        'responsible_location': claims['responsible_location'],
    })
    return body


# --- Catalog & base roles ---

@iam_bp.get('/permissions')
@jwt_required()
def list_permissions():
    return {'data': grouped_catalog()}


@iam_bp.get('/roles')
@jwt_required()
def list_roles():
    return {
        'data': [
            {'value': r.value, 'label': ROLE_LABELS[r], 'group': ROLE_TO_GROUP[r]}
            for r in Role
        ]
    }


@iam_bp.get('/roles/<role>/permissions')
@require_custom_role_manager()
def role_permissions(role: str):
    if Role.parse(role) is None:
        abort(404, description='unknown role')
    return profile_payload(role, _standing())


# --- Custom roles ---

@iam_bp.get('/custom-roles')
@require_any_permission('can_view_users', 'can_assign_custom_roles')
def list_custom_roles():
    limit, offset = _pagination()
    location_id = _int_arg('location')
    if location_id is not None and location_id not in LocationDirectory().valid_ids():
        abort(404, description='unknown location')
    rows, total = CustomRoleStore().list(
        location_id=location_id,
        is_active=_bool_arg('is_active'),
        limit=limit,
        offset=offset,
    )
    return {
        'data': [serialize(r) for r in rows],
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


@iam_bp.get('/custom-roles/<int:role_id>')
@require_any_permission('can_view_users', 'can_assign_custom_roles')
def get_custom_role(role_id: int):
    return serialize(CustomRoleStore().get(role_id))


@iam_bp.post('/custom-roles')
@require_custom_role_manager()
@audit_log('CUSTOM_ROLE.CREATE', entity='CustomRole', entity_id_key='id', meta_keys=['name', 'location', 'permissions'])
def create_custom_role():
    draft = CustomRoleDraft.from_payload(request.json or {})
    role = CustomRoleStore().create(draft, _standing(), author_id=request_user_id())
    return serialize(role), 201


def _prefetch_custom_role(role_id: int):  # helper for audit decorator pre_fetch
    from storeroom.errors import CustomRoleNotFoundError
    try:
        return serialize(CustomRoleStore().get(role_id))
    except CustomRoleNotFoundError:
        return {}


@iam_bp.put('/custom-roles/<int:role_id>')
@require_custom_role_manager()
@audit_log(
    'CUSTOM_ROLE.REPLACE',
    entity='CustomRole',
    entity_id_key='id',
    meta_keys=['name'],
    diff_keys=['name', 'description', 'location', 'requires_base_role', 'is_active', 'permissions'],
    pre_fetch=lambda a, kw: _prefetch_custom_role(kw.get('role_id')),
)
def replace_custom_role(role_id: int):
    draft = CustomRoleDraft.from_payload(request.json or {})
    role = CustomRoleStore().replace(role_id, draft, _standing())
    return serialize(role)


@iam_bp.delete('/custom-roles/<int:role_id>')
@require_custom_role_manager()
def delete_custom_role(role_id: int):
    store = CustomRoleStore()
    role = store.get(role_id)
    name = role.name
    store.delete(role_id)
    add_audit('CUSTOM_ROLE.DELETE', 'CustomRole', role_id, {'name': name})
    get_db().commit()
    return {'status': 'deleted'}


# --- User assignments ---

@iam_bp.put('/users/<int:user_id>/custom-roles')
@require_permissions('can_assign_custom_roles')
@audit_log('USER.CUSTOM_ROLES.SET', entity='User', entity_id_key='user_id', meta_keys=['custom_role_ids'])
def set_user_custom_roles(user_id: int):
    user = _get_user(user_id)
    data = request.json or {}
    if not isinstance(data, dict):
        abort(400, description='Request body must be a JSON object')
    ids = data.get('custom_role_ids') or []
    if not isinstance(ids, list) or any(not isinstance(x, int) for x in ids):
        abort(400, description='custom_role_ids must be list[int]')
    assigned = CustomRoleStore().assign(user, ids, _standing())
    return {'user_id': user.id, 'custom_role_ids': assigned}


@iam_bp.put('/users/<int:user_id>/groups')
@require_role(Role.SYSTEM_ADMIN)
@audit_log('USER.GROUPS.SET', entity='User', entity_id_key='user_id', meta_keys=['groups'])
def set_user_groups(user_id: int):
    session = get_db()
    user = _get_user(user_id)
    data = request.json or {}
    names = set(data.get('groups') or [])
    groups = session.execute(select(Group).where(Group.name.in_(list(names)))).scalars().all() if names else []
    missing = names - {grp.name for grp in groups}
    if missing:
        abort(400, description=f'Unknown groups: {sorted(missing)}')
    # Replace assignments
    session.execute(delete(UserGroup).where(UserGroup.user_id == user.id))
    for grp in groups:
        session.add(UserGroup(user_id=user.id, group_id=grp.id))
    session.commit()
    return {'user_id': user.id, 'groups': sorted(names)}


# --- Audit Log Listing ---
@iam_bp.get('/audit/logs')
@require_role(Role.SYSTEM_ADMIN)
def list_audit_logs():
    session = get_db()
    q = session.query(AuditLog)
    actor = _int_arg('actor_user_id')
    if actor is not None:
        q = q.filter(AuditLog.actor_user_id == actor)
    for name in ('action', 'entity', 'entity_id'):
        value = request.args.get(name)
        if value:
            q = q.filter(getattr(AuditLog, name) == value)
    limit, offset = _pagination()
    total = q.count()
    rows = q.order_by(AuditLog.id.desc()).offset(offset).limit(limit).all()
    return {
        'data': [
            {
                'id': r.id,
                'actor_user_id': r.actor_user_id,
                'action': r.action,
                'entity': r.entity,
                'entity_id': r.entity_id,
                'facts_snapshot': r.facts_snapshot,
                'meta': r.meta,
                'created_at': r.created_at.isoformat() if r.created_at else None
            } for r in rows
        ],
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }
