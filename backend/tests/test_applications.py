import io
from datetime import timedelta
import pytest
from personnel import get_db
from personnel.constants.permissions import HR_VIEW, HR_MANAGE
from personnel.errors import (
    AlreadyEmployedError, ApplicationExistsError, BlacklistedError, IdentityNotLinkedError,
    InvalidStateTransitionError, ValidationError,
)
from personnel.models.application import Application, ApplicationQuestion, BlacklistEntry
from personnel.models.audit import AuditLog
from personnel.models.employee import Employee
from personnel.models.outbox import OutboxEvent
from personnel.services import applications
from personnel.services.unit_of_work import commit_and_dispatch
from personnel.utils.timeutil import utcnow
from tests.test_utils_seed import actor_for, create_employee, jwt_headers, seed_catalog

HR = actor_for([HR_VIEW, HR_MANAGE], user_id=1)


def _to_onboarding(cat, discord_id='123'):
    app_ = applications.create_application(HR, 'Jane Doe', discord_id=discord_id)
    applications.submit_criteria(HR, app_.id, {cid: True for cid in cat['criteria']})
    applications.submit_questions(HR, app_.id, cat['questions'])
    assert app_.status == Application.STATUS_ONBOARDING
    return app_


def test_criteria_all_or_nothing():
    cat = seed_catalog(criteria=11)
    app_ = applications.create_application(HR, 'Applicant')
    answers = {cid: True for cid in cat['criteria']}
    answers[cat['criteria'][-1]] = False
    result = applications.submit_criteria(HR, app_.id, answers)
    assert result.advanced is False
    assert (app_.status, app_.step) == (Application.STATUS_CRITERIA, 1)
    assert [u['id'] for u in result.unmet] == [cat['criteria'][-1]]
    result = applications.submit_criteria(HR, app_.id, {str(cid): True for cid in cat['criteria']})
    assert result.advanced is True
    assert (app_.status, app_.step) == (Application.STATUS_QUESTIONS, 2)


def test_criteria_truthy_strings_do_not_count():
    cat = seed_catalog(criteria=1)
    app_ = applications.create_application(HR, 'Applicant')
    assert applications.submit_criteria(HR, app_.id, {cat['criteria'][0]: 'yes'}).advanced is False


def test_zero_active_criteria_never_pass():
    app_ = applications.create_application(HR, 'Applicant')
    result = applications.submit_criteria(HR, app_.id, {})
    assert result.advanced is False
    assert app_.status == Application.STATUS_CRITERIA


def test_question_threshold_rounds_up():
    cat = seed_catalog(criteria=1, questions=10)
    app_ = applications.create_application(HR, 'Applicant')
    applications.submit_criteria(HR, app_.id, {cat['criteria'][0]: True})
    assert applications.required_answers(10) == 7
    result = applications.submit_questions(HR, app_.id, cat['questions'][:6] + [99999])
    assert result.advanced is False
    assert (result.required, result.satisfied) == (7, 6)
    assert len(result.unmet) == 4
    result = applications.submit_questions(HR, app_.id, cat['questions'][:7])
    assert result.advanced is True
    assert app_.step == 3


def test_inactive_questions_are_ignored():
    cat = seed_catalog(criteria=1, questions=3)
    session = get_db()
    inactive = session.get(ApplicationQuestion, cat['questions'][0])
    inactive.is_active = False
    session.commit()
    app_ = applications.create_application(HR, 'Applicant')
    applications.submit_criteria(HR, app_.id, {cat['criteria'][0]: True})
    # ceil(2 * 0.7) == 2, answering the inactive one does not help
    result = applications.submit_questions(HR, app_.id, [cat['questions'][0], cat['questions'][1]])
    assert (result.required, result.satisfied, result.advanced) == (2, 1, False)


def test_steps_never_go_backwards():
    cat = seed_catalog()
    app_ = _to_onboarding(cat)
    with pytest.raises(InvalidStateTransitionError):
        applications.submit_criteria(HR, app_.id, {})
    with pytest.raises(InvalidStateTransitionError):
        applications.submit_questions(HR, app_.id, [])


def test_onboarding_records_progress_and_pays_once():
    cat = seed_catalog(onboarding=2)
    hr = actor_for([HR_VIEW, HR_MANAGE], user_id=1, employee_id=create_employee('Recruiter', level=4).id)
    app_ = applications.create_application(hr, 'Jane Doe')
    applications.submit_criteria(hr, app_.id, {cid: True for cid in cat['criteria']})
    applications.submit_questions(hr, app_.id, cat['questions'])
    partial = applications.submit_onboarding(hr, app_.id, cat['onboarding'][:1], discord_id='321')
    assert partial.all_complete is False
    assert app_.discord_id == '321'
    for _ in range(2):
        done = applications.submit_onboarding(hr, app_.id, cat['onboarding'])
        assert done.all_complete is True
        assert done.advanced is False
    assert app_.status == Application.STATUS_ONBOARDING
    triggers = [e for e in get_db().query(OutboxEvent).all() if (e.payload or {}).get('activity_type') == 'APPLICATION_ONBOARDING']
    assert len(triggers) == 1


def test_complete_hires_exactly_one_employee(integrations):
    cat = seed_catalog()
    app_ = _to_onboarding(cat, discord_id='555')
    employee = applications.complete(HR, app_.id)
    commit_and_dispatch()
    assert app_.status == Application.STATUS_COMPLETED and app_.step == 4
    assert app_.employee_id == employee.id
    assert (employee.rank_level, employee.rank, employee.badge_number) == (1, 'Cadet', 'G-01')
    assert employee.user.discord_id == '555'
    assert integrations.identity.display_names['555'] == '[G-01] Jane Doe'
    with pytest.raises(InvalidStateTransitionError):
        applications.complete(HR, app_.id)


def test_complete_requires_linked_identity():
    cat = seed_catalog()
    app_ = applications.create_application(HR, 'No Link')
    applications.submit_criteria(HR, app_.id, {cid: True for cid in cat['criteria']})
    applications.submit_questions(HR, app_.id, cat['questions'])
    with pytest.raises(IdentityNotLinkedError):
        applications.complete(HR, app_.id)


def test_complete_for_existing_employee_fails():
    cat = seed_catalog()
    create_employee('Already Here', level=3, badge='G-09', discord_id='555')
    app_ = _to_onboarding(cat, discord_id='555')
    get_db().commit()
    before = get_db().query(Employee).count()
    with pytest.raises(AlreadyEmployedError):
        applications.complete(HR, app_.id)
    get_db().rollback()
    assert get_db().query(Employee).count() == before
    assert get_db().get(Application, app_.id).status == Application.STATUS_ONBOARDING


def test_blacklist_blocks_intake_until_expiry():
    applications.add_blacklist_entry(HR, '666', 'fraud')
    with pytest.raises(BlacklistedError):
        applications.create_application(HR, 'Banned', discord_id='666')
    get_db().add(BlacklistEntry(discord_id='667', reason='old', expires_at=utcnow() - timedelta(days=1)))
    get_db().flush()
    assert applications.create_application(HR, 'Pardoned', discord_id='667').id
    with pytest.raises(ApplicationExistsError):
        applications.create_application(HR, 'Twice', discord_id='667')
    status = applications.check_blacklist(HR, '667')
    assert status['listed'] is True and status['active'] is False


def test_reject_with_blacklist_keeps_step():
    cat = seed_catalog()
    app_ = applications.create_application(HR, 'Rejected', discord_id='888')
    applications.submit_criteria(HR, app_.id, {cid: True for cid in cat['criteria']})
    with pytest.raises(ValidationError):
        applications.reject(HR, app_.id, '  ')
    applications.reject(HR, app_.id, 'failed interview', add_to_blacklist=True)
    assert app_.status == Application.STATUS_REJECTED
    assert app_.step == 2
    assert applications.check_blacklist(HR, '888')['active'] is True
    with pytest.raises(InvalidStateTransitionError):
        applications.reject(HR, app_.id, 'again')


def test_application_api_flow(client, integrations):
    cat = seed_catalog(criteria=2, questions=3, onboarding=1)
    headers = jwt_headers(1, [HR_VIEW, HR_MANAGE])
    created = client.post('/hr/applications', json={'applicant_name': 'Api Applicant'}, headers=headers)
    assert created.status_code == 201, created.get_json()
    app_id = created.get_json()['id']
    step = client.post(f'/hr/applications/{app_id}/criteria',
                       json={'answers': {str(c): True for c in cat['criteria']}}, headers=headers)
    assert step.get_json()['advanced'] is True and step.get_json()['step'] == 2
    step = client.post(f'/hr/applications/{app_id}/questions',
                       json={'answered_question_ids': cat['questions']}, headers=headers)
    assert step.get_json()['status'] == 'ONBOARDING'
    step = client.post(f'/hr/applications/{app_id}/onboarding', json={
        'completed_item_ids': cat['onboarding'],
        'discord_linkage': {'discord_id': '4242', 'discord_username': 'api#1'},
    }, headers=headers)
    assert step.get_json()['all_complete'] is True
    done = client.post(f'/hr/applications/{app_id}/complete', headers=headers)
    assert done.status_code == 201, done.get_json()
    body = done.get_json()
    assert body['application']['status'] == 'COMPLETED'
    assert body['employee']['display_name'] == '[G-01] Api Applicant'
    actions = [a.action for a in get_db().query(AuditLog).order_by(AuditLog.id)]
    assert actions == [
        'APPLICATION.CREATE', 'APPLICATION.CRITERIA', 'APPLICATION.QUESTIONS', 'APPLICATION.ONBOARDING',
        'APPLICATION.COMPLETE',
    ]


def test_id_card_upload_and_download(client):
    headers = jwt_headers(1, [HR_VIEW, HR_MANAGE])
    app_id = client.post('/hr/applications', json={'applicant_name': 'Card Holder'}, headers=headers).get_json()['id']
    missing = client.get(f'/hr/applications/{app_id}/id-card', headers=headers)
    assert missing.status_code == 404
    up = client.put(f'/hr/applications/{app_id}/id-card', headers=headers,
                    data={'file': (io.BytesIO(b'fake-image'), 'card.png')}, content_type='multipart/form-data')
    assert up.status_code == 200, up.get_json()
    assert up.get_json()['has_id_card'] is True
    down = client.get(f'/hr/applications/{app_id}/id-card', headers=headers)
    assert down.status_code == 200 and down.data == b'fake-image'
    assert client.delete(f'/hr/applications/{app_id}', headers=headers).status_code == 200


def test_invite_failure_maps_to_external_sync(client, integrations):
    headers = jwt_headers(1, [HR_MANAGE])
    ok = client.post('/hr/invites', headers=headers)
    assert ok.status_code == 201 and ok.get_json()['url'].startswith('https://discord.gg/')
    integrations.identity.available = False
    failed = client.post('/hr/invites', headers=headers)
    assert failed.status_code == 502
    assert failed.get_json()['error']['kind'] == 'ExternalSyncFailure'


def test_replaced_and_deleted_id_cards_removed_only_after_commit(integrations):
    blobs = integrations.blobs
    app_ = applications.create_application(HR, 'Card Swap')
    first = applications.attach_id_card(HR, app_.id, 'card.png', b'first', blobs).id_card_path
    commit_and_dispatch()

    applications.attach_id_card(HR, app_.id, 'card.png', b'second', blobs)
    get_db().rollback()
    assert get_db().get(Application, app_.id).id_card_path == first
    assert blobs.retrieve(first) == b'first'

    second = applications.attach_id_card(HR, app_.id, 'card.png', b'second', blobs).id_card_path
    commit_and_dispatch()
    with pytest.raises(FileNotFoundError):
        blobs.retrieve(first)

    applications.delete_application(HR, app_.id)
    get_db().rollback()
    assert blobs.retrieve(second) == b'second'
    applications.delete_application(HR, app_.id)
    commit_and_dispatch()
    with pytest.raises(FileNotFoundError):
        blobs.retrieve(second)


def test_onboarding_linkage_and_ids_are_validated(client):
    cat = seed_catalog(onboarding=2)
    app_ = _to_onboarding(cat)
    commit_and_dispatch()
    headers = jwt_headers(1, [HR_VIEW, HR_MANAGE])
    r = client.post(f'/hr/applications/{app_.id}/onboarding',
                    json={'completed_item_ids': cat['onboarding'], 'discord_linkage': 'not-an-object'}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error']['kind'] == 'ValidationError'
    r = client.post(f'/hr/applications/{app_.id}/onboarding',
                    json={'completed_item_ids': [cat['onboarding'][0] + 0.5]}, headers=headers)
    assert r.status_code == 400
    assert get_db().get(Application, app_.id).onboarding_completed_ids in (None, [])
