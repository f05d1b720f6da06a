import pytest
from personnel import get_db
from personnel.constants.permissions import ACADEMY_MANAGE, ACADEMY_VIEW, UPRANK_REQUEST
from personnel.errors import DuplicateRequestError, NotEligibleError, ValidationError, PermissionDenied
from personnel.models.academy import AcademyModule, AcademyProgress, UprankRequest
from personnel.models.bonus import BonusPayment
from personnel.services import academy
from personnel.services.unit_of_work import commit_and_dispatch
from tests.test_utils_seed import actor_for, create_employee, create_module, set_bonus, jwt_headers

INSTRUCTOR = actor_for([ACADEMY_MANAGE, ACADEMY_VIEW])


def _junior_modules(count=6):
    return [create_module(f'JO module {i + 1}', sort_order=i) for i in range(count)]


def test_complete_category_allows_single_pending_request():
    cadet = create_employee('Cadet One', level=1, badge='G-01')
    modules = _junior_modules()
    create_module('Officer module', category=AcademyModule.CATEGORY_OFFICER)
    for m in modules[:-1]:
        academy.toggle_module_completion(INSTRUCTOR, cadet.id, m.id)
    elig = academy.compute_eligibility(cadet.id)
    assert elig['JUNIOR_OFFICER'] == {'target_rank': 'Junior Officer', 'eligible': False, 'completed': 5, 'total': 6}
    with pytest.raises(NotEligibleError):
        academy.request_uprank(INSTRUCTOR, cadet.id, 'Junior Officer')

    academy.toggle_module_completion(INSTRUCTOR, cadet.id, modules[-1].id)
    elig = academy.compute_eligibility(cadet.id)
    assert elig['JUNIOR_OFFICER']['eligible'] is True
    assert elig['OFFICER']['eligible'] is False

    req = academy.request_uprank(INSTRUCTOR, cadet.id, 'Junior Officer')
    commit_and_dispatch()
    assert req.status == UprankRequest.STATUS_PENDING
    assert req.is_academy_request is True
    assert req.current_rank == 'Cadet'
    assert 'JO module 1' in req.reason
    with pytest.raises(DuplicateRequestError):
        academy.request_uprank(INSTRUCTOR, cadet.id, 'Junior Officer')


def test_category_without_modules_is_never_eligible():
    cadet = create_employee('Cadet Two')
    elig = academy.compute_eligibility(cadet.id)
    assert elig['JUNIOR_OFFICER']['total'] == 0
    assert elig['JUNIOR_OFFICER']['eligible'] is False
    with pytest.raises(NotEligibleError):
        academy.request_uprank(INSTRUCTOR, cadet.id, 'Junior Officer')


def test_inactive_modules_do_not_count():
    cadet = create_employee('Cadet Three')
    done, retired = _junior_modules(2)
    retired.is_active = False
    get_db().commit()
    academy.toggle_module_completion(INSTRUCTOR, cadet.id, done.id)
    assert academy.compute_eligibility(cadet.id)['JUNIOR_OFFICER']['eligible'] is True


def test_request_for_non_academy_rank_rejected():
    cadet = create_employee('Cadet Four')
    with pytest.raises(ValidationError):
        academy.request_uprank(INSTRUCTOR, cadet.id, 'Captain')


def test_request_below_current_rank_is_not_a_promotion():
    corporal = create_employee('Corporal', level=5, badge='G-05')
    for m in _junior_modules():
        academy.toggle_module_completion(INSTRUCTOR, corporal.id, m.id)
    assert academy.compute_eligibility(corporal.id)['JUNIOR_OFFICER']['eligible'] is True
    with pytest.raises(NotEligibleError) as exc:
        academy.request_uprank(INSTRUCTOR, corporal.id, 'Junior Officer')
    assert exc.value.details['current_level'] == 5
    assert get_db().query(UprankRequest).count() == 0


def test_toggle_flips_and_clears_completion():
    cadet = create_employee('Cadet Five')
    m = create_module('Basic')
    p = academy.toggle_module_completion(INSTRUCTOR, cadet.id, m.id)
    assert p.completed is True and p.completed_at is not None and p.completed_by_id == INSTRUCTOR.user_id
    p = academy.toggle_module_completion(INSTRUCTOR, cadet.id, m.id)
    assert p.completed is False and p.completed_at is None
    assert get_db().query(AcademyProgress).filter_by(employee_id=cadet.id).count() == 1


def test_incentive_fires_only_when_completing():
    set_bonus('ACADEMY_MODULE_COMPLETED', 50, category='ACADEMY')
    trainer = create_employee('Trainer', level=6, badge='S-01')
    cadet = create_employee('Cadet Six')
    m = create_module('Basic')
    actor = actor_for([ACADEMY_MANAGE], employee_id=trainer.id)

    academy.toggle_module_completion(actor, cadet.id, m.id)
    commit_and_dispatch()
    payments = get_db().query(BonusPayment).filter_by(employee_id=trainer.id).all()
    assert len(payments) == 1
    assert payments[0].amount == 50 and payments[0].status == BonusPayment.STATUS_PENDING

    # un-completing leaves the payment alone
    academy.toggle_module_completion(actor, cadet.id, m.id)
    commit_and_dispatch()
    payments = get_db().query(BonusPayment).filter_by(employee_id=trainer.id).all()
    assert [p.status for p in payments] == [BonusPayment.STATUS_PENDING]

    academy.toggle_module_completion(actor, cadet.id, m.id)
    commit_and_dispatch()
    assert get_db().query(BonusPayment).filter_by(employee_id=trainer.id).count() == 2


def test_actor_without_employee_earns_nothing():
    set_bonus('ACADEMY_MODULE_COMPLETED', 50, category='ACADEMY')
    cadet = create_employee('Cadet Seven')
    m = create_module('Basic')
    academy.toggle_module_completion(INSTRUCTOR, cadet.id, m.id)
    commit_and_dispatch()
    assert get_db().query(BonusPayment).count() == 0


def test_toggle_requires_manage_permission():
    cadet = create_employee('Cadet Eight')
    m = create_module('Basic')
    with pytest.raises(PermissionDenied):
        academy.toggle_module_completion(actor_for([ACADEMY_VIEW]), cadet.id, m.id)


def test_academy_api_progress_and_request(client):
    cadet = create_employee('Cadet Nine')
    m = create_module('Only module')
    headers = jwt_headers(1, [ACADEMY_MANAGE, ACADEMY_VIEW, UPRANK_REQUEST])

    r = client.post(f'/academy/employees/{cadet.id}/modules/{m.id}/toggle', headers=headers)
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['completed'] is True

    r = client.get(f'/academy/employees/{cadet.id}/progress', headers=headers)
    body = r.get_json()
    jo = body['categories']['JUNIOR_OFFICER']
    assert jo['completed'] == 1 and jo['total'] == 1
    assert jo['modules'][0]['completed_at'].endswith('Z')

    r = client.get(f'/academy/employees/{cadet.id}/eligibility', headers=headers)
    assert r.get_json()['categories']['JUNIOR_OFFICER']['eligible'] is True

    r = client.post(f'/academy/employees/{cadet.id}/uprank-request', json={'target_rank': 'Junior Officer'},
                    headers=headers)
    assert r.status_code == 201, r.get_json()
    assert r.get_json()['status'] == 'PENDING'

    r = client.post(f'/academy/employees/{cadet.id}/uprank-request', json={'target_rank': 'Junior Officer'},
                    headers=headers)
    assert r.status_code == 409
    assert r.get_json()['error']['kind'] == 'DuplicateRequestError'


def test_module_catalog_api(client):
    headers = jwt_headers(1, [ACADEMY_MANAGE, ACADEMY_VIEW])
    r = client.post('/academy/modules', json={'name': 'Scene management', 'category': 'OFFICER', 'sort_order': 2},
                    headers=headers)
    assert r.status_code == 201
    module_id = r.get_json()['id']
    assert r.get_json()['target_rank'] == 'Officer'

    r = client.post('/academy/modules', json={'name': 'Bad', 'category': 'DETECTIVE'}, headers=headers)
    assert r.status_code == 400

    r = client.patch(f'/academy/modules/{module_id}', json={'is_active': False}, headers=headers)
    assert r.get_json()['is_active'] is False
    r = client.get('/academy/modules', headers=headers)
    assert r.get_json()['data'] == []
    r = client.get('/academy/modules?include_inactive=1', headers=headers)
    assert [m['name'] for m in r.get_json()['data']] == ['Scene management']
