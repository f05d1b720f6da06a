from flask import Blueprint, request
from flask_jwt_extended import create_access_token, jwt_required, get_jwt_identity
from sqlalchemy import select, delete
from personnel.models.authz import User, Role, Permission, RolePermission, UserRole
from personnel.models.audit import AuditLog
from personnel import get_db
from personnel.constants.permissions import ADMIN_ROLES, AUDIT_VIEW
from personnel.errors import AuthenticationError, NotFoundError, ValidationError, ConflictError
from personnel.services.policy import build_claims, compute_effective_permissions, assert_not_removing_last_admin, role_names
from personnel.utils.listing import apply_pagination, cached_list
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat
from personnel.utils.validation import int_list
from personnel.decorators.audit import audit_log
from personnel.decorators.auth import require_permissions

iam_bp = Blueprint('iam', __name__)


@iam_bp.get('/permissions')
@require_permissions(ADMIN_ROLES)
def list_permissions(actor):
    session = get_db()
    q = session.query(Permission)
    service = request.args.get('service')
    if service:
        q = q.filter(Permission.service==service)
    q = apply_multi_sort(q, request.args.get('sort'), {'code': Permission.code, 'service': Permission.service}, Permission.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [
        {'id': p.id, 'code': p.code, 'service': p.service, 'action': p.action, 'description': p.description}
        for p in rows
    ]
    latest_ts = max((p.updated_at for p in rows if p.updated_at), default=None)
    return cached_list(data, total, limit, offset, latest_ts)


@iam_bp.get('/roles')
@require_permissions(ADMIN_ROLES)
def list_roles(actor):
    session = get_db()
    q = apply_multi_sort(session.query(Role), request.args.get('sort'), {'name': Role.name, 'id': Role.id}, Role.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [
        {'id': r.id, 'name': r.name, 'is_system': r.is_system, 'permissions': sorted(rp.permission.code for rp in r.permissions)}
        for r in rows
    ]
    latest_ts = max((r.updated_at for r in rows if r.updated_at), default=None)
    return cached_list(data, total, limit, offset, latest_ts)


@iam_bp.post('/roles')
@require_permissions(ADMIN_ROLES)
@audit_log('ROLE.CREATE', entity='Role', entity_id_key='id', meta_keys=['name'])
def create_role(actor):
    data = request.json or {}
    name = (data.get('name') or '').strip()
    if not name:
        raise ValidationError('name required')
    session = get_db()
    if session.execute(select(Role).where(Role.name==name)).scalar_one_or_none():
        raise ConflictError('role exists')
    role = Role(name=name, is_system=False, description=data.get('description'))
    session.add(role)
    session.flush()
    return {'id': role.id, 'name': role.name}, 201


@iam_bp.put('/roles/<int:role_id>/permissions')
@require_permissions(ADMIN_ROLES)
@audit_log(
    'ROLE.PERM.REPLACE',
    entity='Role',
    entity_id_key='id',
    meta_builder=lambda data, rv, a, kw: {'count': len(data.get('permissions', []))},
)
def replace_role_permissions(role_id: int, actor):
    session = get_db()
    role = session.get(Role, role_id)
    if not role:
        raise NotFoundError(f'Role {role_id} not found')
    data = request.json or {}
    codes = data.get('permissions') or []
    # Map codes -> Permission objects
    perms = session.execute(select(Permission).where(Permission.code.in_(codes))).scalars().all()
    missing = set(codes) - {p.code for p in perms}
    if missing:
        raise ValidationError(f'Unknown permission codes: {sorted(missing)}')
    session.execute(delete(RolePermission).where(RolePermission.role_id==role.id))
    for p in perms:
        session.add(RolePermission(role_id=role.id, permission_id=p.id))
    session.flush()
    return {'id': role.id, 'permissions': sorted(codes)}


@iam_bp.put('/users/<int:user_id>/roles')
@require_permissions(ADMIN_ROLES)
@audit_log('USER.ROLES.SET', entity='User', entity_id_key='user_id', meta_keys=['role_ids'])
def set_user_roles(user_id: int, actor):
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f'User {user_id} not found')
    data = request.json or {}
    role_ids = set(int_list(data.get('role_ids'), 'role_ids'))
    roles = session.execute(select(Role).where(Role.id.in_(list(role_ids)))).scalars().all() if role_ids else []
    missing = role_ids - {r.id for r in roles}
    if missing:
        raise ValidationError(f'Unknown role ids: {sorted(missing)}')
    assert_not_removing_last_admin(user.id, role_ids)
    session.execute(delete(UserRole).where(UserRole.user_id==user.id))
    for rid in role_ids:
        session.add(UserRole(user_id=user.id, role_id=rid))
    session.flush()
    return {'user_id': user.id, 'role_ids': sorted(role_ids)}


@iam_bp.post('/auth/login')
def login():
    data = request.json or {}
    username = data.get('username'); password = data.get('password')
    if not username or not password:
        raise ValidationError('username & password required')
    session = get_db()
    user = session.execute(select(User).where(User.username==username)).scalar_one_or_none()
    if not user or not user.is_active or not user.verify_password(password):
        raise AuthenticationError('invalid credentials')
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims=build_claims(user.id))
    return {'access_token': token}


@iam_bp.get('/auth/me')
@jwt_required()
def me():
    user_id = int(get_jwt_identity())
    session = get_db()
    user = session.get(User, user_id)
    if not user:
        raise NotFoundError(f'User {user_id} not found')
    eff = compute_effective_permissions(user.id)
    employee = user.employee
    return {
        'id': user.id,
        'username': user.username,
        'display_name': user.display_name,
        'discord_id': user.discord_id,
        'roles': role_names(eff['roles']),
        'perms': eff['perms'],
        'employee': {
            'id': employee.id,
            'rank': employee.rank,
            'badge_number': employee.badge_number,
            'display_name': employee.display_name,
        } if employee else None,
    }


@iam_bp.get('/audit-logs')
@require_permissions(AUDIT_VIEW)
def list_audit_logs(actor):
    session = get_db()
    q = session.query(AuditLog)
    action = request.args.get('action')
    entity = request.args.get('entity')
    if action:
        q = q.filter(AuditLog.action==action)
    if entity:
        q = q.filter(AuditLog.entity==entity)
        if request.args.get('entity_id'):
            q = q.filter(AuditLog.entity_id==request.args.get('entity_id'))
    q = q.order_by(AuditLog.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    data = [
        {
            'id': a.id,
            'actor_user_id': a.actor_user_id,
            'action': a.action,
            'entity': a.entity,
            'entity_id': a.entity_id,
            'meta': a.meta or {},
            'created_at': isoformat(a.created_at),
        }
        for a in rows
    ]
    latest_ts = rows[0].created_at if rows else None
    return cached_list(data, total, limit, offset, latest_ts)
