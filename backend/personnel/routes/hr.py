from __future__ import annotations
from flask import Blueprint, request, make_response
from personnel import get_db
from personnel.constants.permissions import HR_VIEW, HR_MANAGE
from personnel.decorators.auth import require_permissions
from personnel.decorators.audit import audit_log
from personnel.errors import ValidationError
from personnel.models.application import Application, BlacklistEntry
from personnel.routes.employees import employee_json
from personnel.services import applications
from personnel.services.integrations import get_integrations
from personnel.utils.listing import apply_pagination, cached_list, cached_item
from personnel.utils.sorting import apply_multi_sort
from personnel.utils.timeutil import isoformat, utcnow, as_utc
from personnel.utils.validation import validate_status, int_list, optional_datetime, optional_text

hr_bp = Blueprint('hr', __name__)


def _application_json(a: Application) -> dict:
    return {
        'id': a.id,
        'applicant_name': a.applicant_name,
        'discord_id': a.discord_id,
        'discord_username': a.discord_username,
        'status': a.status,
        'step': a.step,
        'criteria_answers': a.criteria_answers or {},
        'answered_question_ids': a.answered_question_ids or [],
        'onboarding_completed_ids': a.onboarding_completed_ids or [],
        'rejection_reason': a.rejection_reason,
        'notes': a.notes,
        'has_id_card': bool(a.id_card_path),
        'employee_id': a.employee_id,
        'created_by_id': a.created_by_id,
        'processed_by_id': a.processed_by_id,
        'processed_at': isoformat(a.processed_at),
        'created_at': isoformat(a.created_at),
        'updated_at': isoformat(a.updated_at),
    }


def _blacklist_json(b: BlacklistEntry) -> dict:
    expires = as_utc(b.expires_at)
    return {
        'id': b.id,
        'discord_id': b.discord_id,
        'username': b.username,
        'reason': b.reason,
        'expires_at': isoformat(expires),
        'active': expires is None or expires > utcnow(),
        'added_by_id': b.added_by_id,
        'created_at': isoformat(b.created_at),
    }


# --- applications ---

@hr_bp.get('/applications')
@require_permissions(HR_VIEW)
def list_applications(actor):
    session = get_db()
    q = session.query(Application)
    status = request.args.get('status')
    if status:
        q = q.filter(Application.status==validate_status(status, Application.ALL_STATUSES))
    elif request.args.get('open') in ('1', 'true'):
        q = q.filter(Application.status.in_(Application.OPEN_STATUSES))
    search = request.args.get('q')
    if search:
        q = q.filter(Application.applicant_name.ilike(f'%{search}%'))
    allowed = {
        'applicant_name': Application.applicant_name,
        'status': Application.status,
        'created_at': Application.created_at,
        'updated_at': Application.updated_at,
        'id': Application.id,
    }
    q = apply_multi_sort(q, request.args.get('sort') or '-created_at', allowed, Application.id)
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    latest_ts = max((a.updated_at for a in rows if a.updated_at), default=None)
    return cached_list([_application_json(a) for a in rows], total, limit, offset, latest_ts)


@hr_bp.post('/applications')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.CREATE', entity='Application', entity_id_key='id', meta_keys=['applicant_name', 'discord_id'])
def create_application(actor):
    data = request.json or {}
    app_ = applications.create_application(
        actor, data.get('applicant_name'), data.get('discord_id'), data.get('discord_username'), data.get('notes'),
    )
    return _application_json(app_), 201


@hr_bp.get('/applications/<int:application_id>')
@require_permissions(HR_VIEW)
def get_application(application_id: int, actor):
    a = applications.get_application(application_id)
    return cached_item(_application_json(a), a.updated_at)


@hr_bp.delete('/applications/<int:application_id>')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.DELETE', entity='Application', entity_id_arg='application_id')
def delete_application(application_id: int, actor):
    applications.delete_application(actor, application_id)
    return {'status': 'deleted'}


@hr_bp.post('/applications/<int:application_id>/criteria')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.CRITERIA', entity='Application', entity_id_arg='application_id',
           meta_keys=['advanced', 'status', 'satisfied', 'required'])
def submit_criteria(application_id: int, actor):
    data = request.json or {}
    answers = data.get('answers') or {}
    if not isinstance(answers, dict):
        raise ValidationError('answers must be an object of criterion id -> bool')
    return applications.submit_criteria(actor, application_id, answers).to_dict()


@hr_bp.post('/applications/<int:application_id>/questions')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.QUESTIONS', entity='Application', entity_id_arg='application_id',
           meta_keys=['advanced', 'status', 'satisfied', 'required'])
def submit_questions(application_id: int, actor):
    data = request.json or {}
    ids = int_list(data.get('answered_question_ids'), 'answered_question_ids')
    return applications.submit_questions(actor, application_id, ids).to_dict()


@hr_bp.post('/applications/<int:application_id>/onboarding')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.ONBOARDING', entity='Application', entity_id_arg='application_id',
           meta_keys=['all_complete', 'satisfied', 'required'])
def submit_onboarding(application_id: int, actor):
    data = request.json or {}
    ids = int_list(data.get('completed_item_ids'), 'completed_item_ids')
    linkage = data.get('discord_linkage') or {}
    if not isinstance(linkage, dict):
        raise ValidationError('discord_linkage must be an object')
    return applications.submit_onboarding(
        actor, application_id, ids, optional_text(linkage.get('discord_id')), optional_text(linkage.get('discord_username')),
    ).to_dict()


@hr_bp.post('/applications/<int:application_id>/complete')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.COMPLETE', entity='Application', entity_id_arg='application_id',
           meta_builder=lambda data, rv, a, kw: {'employee_id': data['employee']['id']})
def complete(application_id: int, actor):
    employee = applications.complete(actor, application_id)
    return {'application': _application_json(applications.get_application(application_id)), 'employee': employee_json(employee)}, 201


@hr_bp.post('/applications/<int:application_id>/reject')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.REJECT', entity='Application', entity_id_key='id', meta_keys=['rejection_reason'])
def reject(application_id: int, actor):
    data = request.json or {}
    a = applications.reject(
        actor, application_id, data.get('reason'),
        add_to_blacklist=bool(data.get('add_to_blacklist')),
        blacklist_reason=data.get('blacklist_reason'),
        blacklist_expires_at=optional_datetime(data.get('blacklist_expires_at'), 'blacklist_expires_at'),
    )
    return _application_json(a)


@hr_bp.put('/applications/<int:application_id>/id-card')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.ID_CARD', entity='Application', entity_id_key='id')
def upload_id_card(application_id: int, actor):
    upload = request.files.get('file')
    if upload is None:
        raise ValidationError('file required')
    a = applications.attach_id_card(actor, application_id, upload.filename, upload.read(), get_integrations().blobs)
    return _application_json(a)


@hr_bp.get('/applications/<int:application_id>/id-card')
@require_permissions(HR_VIEW)
def download_id_card(application_id: int, actor):
    data = applications.read_id_card(actor, application_id, get_integrations().blobs)
    resp = make_response(data)
    resp.headers['Content-Type'] = 'application/octet-stream'
    return resp


@hr_bp.post('/invites')
@require_permissions(HR_MANAGE)
@audit_log('APPLICATION.INVITE', entity='Invite')
def create_invite(actor):
    return {'url': applications.create_invite(actor, get_integrations().identity)}, 201


@hr_bp.get('/catalog')
@require_permissions(HR_VIEW)
def catalog(actor):
    return applications.catalog(actor)


# --- blacklist ---

@hr_bp.get('/blacklist')
@require_permissions(HR_VIEW)
def list_blacklist(actor):
    q = applications.list_blacklist(actor).order_by(BlacklistEntry.created_at.desc(), BlacklistEntry.id.desc())
    paged_q, total, limit, offset = apply_pagination(q)
    rows = paged_q.all()
    return cached_list([_blacklist_json(b) for b in rows], total, limit, offset, rows[0].created_at if rows else None)


@hr_bp.post('/blacklist')
@require_permissions(HR_MANAGE)
@audit_log('BLACKLIST.ADD', entity='BlacklistEntry', entity_id_key='id', meta_keys=['discord_id', 'reason'])
def add_blacklist(actor):
    data = request.json or {}
    entry = applications.add_blacklist_entry(
        actor, data.get('discord_id'), data.get('reason'), data.get('username'),
        optional_datetime(data.get('expires_at'), 'expires_at'),
    )
    return _blacklist_json(entry), 201


@hr_bp.delete('/blacklist/<int:entry_id>')
@require_permissions(HR_MANAGE)
@audit_log('BLACKLIST.REMOVE', entity='BlacklistEntry', entity_id_arg='entry_id')
def remove_blacklist(entry_id: int, actor):
    applications.remove_blacklist_entry(actor, entry_id)
    return {'status': 'deleted'}


@hr_bp.get('/blacklist/check/<discord_id>')
@require_permissions(HR_VIEW)
def check_blacklist(discord_id: str, actor):
    return applications.check_blacklist(actor, discord_id)
