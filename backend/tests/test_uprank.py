from datetime import timedelta
import pytest
from personnel import get_db
from personnel.constants.permissions import UPRANK_REQUEST, UPRANK_PROCESS
from personnel.errors import (
    DuplicateRequestError, UprankLockedError, ValidationError, InvalidStateTransitionError, NotFoundError,
)
from personnel.models.academy import UprankLock, UprankRequest
from personnel.models.employee import Employee
from personnel.services import uprank
from personnel.services.unit_of_work import commit_and_dispatch
from personnel.utils.timeutil import utcnow, as_utc
from tests.test_utils_seed import actor_for, create_employee, jwt_headers

SUPERVISOR = actor_for([UPRANK_REQUEST, UPRANK_PROCESS])


def test_approve_applies_level_and_locks(integrations):
    emp = create_employee('Rookie', level=2, badge='G-02', discord_id='321')
    req = uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'Solid patrol record')
    commit_and_dispatch()
    assert req.current_rank == 'Junior Officer'

    uprank.process_request(SUPERVISOR, req.id, 'APPROVED')
    commit_and_dispatch()
    refreshed = get_db().get(Employee, emp.id)
    assert (refreshed.rank_level, refreshed.rank, refreshed.badge_number) == (3, 'Officer', 'G-02')
    assert req.status == 'APPROVED' and req.processed_by_id == SUPERVISOR.user_id

    lock = uprank.active_lock(emp.id)
    assert lock is not None and lock.team == 'Green'
    # Green locks for one week
    remaining = as_utc(lock.locked_until) - utcnow()
    assert timedelta(days=6) < remaining <= timedelta(weeks=1)
    with pytest.raises(UprankLockedError):
        uprank.create_request(SUPERVISOR, emp.id, 'Senior Officer', 'again')


def test_approve_across_team_reassigns_badge(integrations):
    emp = create_employee('Corporal', level=5, badge='G-09', discord_id='654')
    req = uprank.create_request(SUPERVISOR, emp.id, 'Sergeant I', 'Leadership')
    uprank.process_request(SUPERVISOR, req.id, 'APPROVED')
    commit_and_dispatch()
    refreshed = get_db().get(Employee, emp.id)
    assert refreshed.badge_number == 'S-01'
    assert uprank.active_lock(emp.id).team == 'Silver'
    assert integrations.identity.display_names['654'] == '[S-01] Corporal'


def test_team_without_lock_duration_gets_no_lock():
    emp = create_employee('Major', level=12, badge='GD-01')
    req = uprank.create_request(SUPERVISOR, emp.id, 'Commander', 'Command experience')
    uprank.process_request(SUPERVISOR, req.id, 'APPROVED')
    commit_and_dispatch()
    assert uprank.active_lock(emp.id) is None


def test_duplicate_pending_request_rejected():
    emp = create_employee('Twice', level=2)
    uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'first')
    with pytest.raises(DuplicateRequestError):
        uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'second')


def test_request_validation():
    emp = create_employee('Validator', level=3)
    with pytest.raises(ValidationError):
        uprank.create_request(SUPERVISOR, emp.id, 'Grand Wizard', 'unknown rank')
    with pytest.raises(ValidationError):
        uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'same rank')
    with pytest.raises(ValidationError):
        uprank.create_request(SUPERVISOR, emp.id, 'Senior Officer', '   ')
    with pytest.raises(NotFoundError):
        uprank.create_request(SUPERVISOR, 9999, 'Senior Officer', 'missing')


def test_reject_requires_reason_and_is_terminal():
    emp = create_employee('Denied', level=2)
    req = uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'hopeful')
    with pytest.raises(ValidationError):
        uprank.process_request(SUPERVISOR, req.id, 'REJECTED')
    uprank.process_request(SUPERVISOR, req.id, 'REJECTED', 'Needs more patrol hours')
    commit_and_dispatch()
    assert req.rejection_reason == 'Needs more patrol hours'
    assert get_db().get(Employee, emp.id).rank_level == 2
    with pytest.raises(InvalidStateTransitionError):
        uprank.process_request(SUPERVISOR, req.id, 'APPROVED')
    with pytest.raises(ValidationError):
        uprank.process_request(SUPERVISOR, req.id, 'PENDING')
    # a rejected request no longer blocks a new one
    assert uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'second try').status == 'PENDING'


def test_manual_lock_and_lift():
    emp = create_employee('Locked', level=7, badge='S-01')
    lock = uprank.create_lock(SUPERVISOR, emp.id, 'Disciplinary hold', utcnow() + timedelta(days=3))
    commit_and_dispatch()
    assert lock.team == 'Silver'
    with pytest.raises(UprankLockedError):
        uprank.create_request(SUPERVISOR, emp.id, 'Staff Sergeant', 'blocked')
    uprank.lift_lock(SUPERVISOR, lock.id)
    commit_and_dispatch()
    assert uprank.active_lock(emp.id) is None
    assert uprank.create_request(SUPERVISOR, emp.id, 'Staff Sergeant', 'unblocked').status == 'PENDING'


def test_expired_lock_does_not_block():
    emp = create_employee('Past lock', level=2)
    uprank.create_lock(SUPERVISOR, emp.id, 'Old hold', utcnow() - timedelta(days=1))
    commit_and_dispatch()
    assert uprank.active_lock(emp.id) is None
    uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'fine now')


def test_create_lock_requires_until():
    emp = create_employee('No until', level=2)
    with pytest.raises(ValidationError):
        uprank.create_lock(SUPERVISOR, emp.id, 'hold', None)


def test_uprank_api_flow(client):
    emp = create_employee('Api Rookie', level=2, badge='G-05')
    requester = jwt_headers(1, [UPRANK_REQUEST])
    processor = jwt_headers(2, [UPRANK_PROCESS])

    r = client.post('/uprank/requests', json={'employee_id': emp.id, 'target_rank': 'Officer', 'reason': 'Ready'},
                    headers=requester)
    assert r.status_code == 201, r.get_json()
    req_id = r.get_json()['id']

    r = client.post(f'/uprank/requests/{req_id}/process', json={'status': 'APPROVED'}, headers=requester)
    assert r.status_code == 403

    r = client.post(f'/uprank/requests/{req_id}/process', json={'status': 'APPROVED'}, headers=processor)
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['status'] == 'APPROVED'

    r = client.get(f'/uprank/locks?employee_id={emp.id}', headers=processor)
    locks = r.get_json()['data']
    assert len(locks) == 1 and locks[0]['team'] == 'Green'

    r = client.post('/uprank/requests', json={'employee_id': emp.id, 'target_rank': 'Senior Officer', 'reason': 'More'},
                    headers=requester)
    assert r.status_code == 400
    assert r.get_json()['error']['kind'] == 'UprankLockedError'

    r = client.get('/uprank/requests?status=APPROVED', headers=requester)
    assert [x['id'] for x in r.get_json()['data']] == [req_id]
    assert get_db().query(UprankRequest).count() == 1
    assert get_db().query(UprankLock).count() == 1


def test_request_must_target_a_higher_rank():
    emp = create_employee('Corporal', level=5, badge='G-05')
    with pytest.raises(ValidationError):
        uprank.create_request(SUPERVISOR, emp.id, 'Junior Officer', 'wrong direction')
    assert get_db().query(UprankRequest).count() == 0


def test_approval_rechecks_direction_after_rank_change():
    emp = create_employee('Overtaken', level=2, badge='G-02')
    req = uprank.create_request(SUPERVISOR, emp.id, 'Officer', 'pending for a while')
    commit_and_dispatch()
    # promoted through another path while the request was pending
    emp.rank_level, emp.rank = 4, 'Senior Officer'
    get_db().commit()
    with pytest.raises(ValidationError):
        uprank.process_request(SUPERVISOR, req.id, 'APPROVED')
    get_db().rollback()
    assert get_db().get(Employee, emp.id).rank_level == 4
    assert get_db().get(UprankRequest, req.id).status == 'PENDING'
