import pytest
from personnel.constants.permissions import (
    ADMIN_FULL, EMPLOYEES_VIEW, EMPLOYEES_RANK, HR_MANAGE, UPRANK_REQUEST,
)
from tests.test_utils_seed import create_employee, jwt_headers, seed_user_with_role, ensure_user

DENIED = [
    ('get', '/employees', None),
    ('post', '/employees/{emp}/promote', {}),
    ('put', '/employees/{emp}/units', {'unit_role_ids': []}),
    ('post', '/hr/applications', {'applicant_name': 'X'}),
    ('post', '/academy/modules', {'name': 'X', 'category': 'OFFICER'}),
    ('post', '/uprank/requests/1/process', {'status': 'APPROVED'}),
    ('get', '/treasury', None),
    ('post', '/sanctions', {'employee_id': 1, 'reason': 'x', 'warning': True}),
    ('post', '/bonus/weeks/close', {}),
    ('get', '/iam/roles', None),
    ('get', '/iam/audit-logs', None),
]


@pytest.mark.parametrize('method,path,body', DENIED)
def test_endpoints_require_permission(client, method, path, body):
    emp = create_employee('Target')
    headers = jwt_headers(1, [])
    resp = getattr(client, method)(path.format(emp=emp.id), json=body, headers=headers)
    assert resp.status_code == 403, resp.get_json()
    err = resp.get_json()['error']
    assert err['kind'] == 'PermissionDenied'
    assert err['required']


def test_view_permission_does_not_grant_mutation(client):
    emp = create_employee('Viewer target', level=2, badge='G-02')
    resp = client.post(f'/employees/{emp.id}/promote', json={}, headers=jwt_headers(1, [EMPLOYEES_VIEW]))
    assert resp.status_code == 403
    assert resp.get_json()['error']['required'] == [EMPLOYEES_RANK]
    resp = client.post(f'/employees/{emp.id}/promote', json={}, headers=jwt_headers(1, [EMPLOYEES_RANK]))
    assert resp.status_code == 200, resp.get_json()


def test_admin_full_satisfies_every_check(client):
    emp = create_employee('Admin target', level=2, badge='G-02')
    headers = jwt_headers(1, [ADMIN_FULL])
    assert client.get('/employees', headers=headers).status_code == 200
    assert client.post(f'/employees/{emp.id}/promote', json={}, headers=headers).status_code == 200
    assert client.get('/treasury', headers=headers).status_code == 200


def test_any_of_permission_on_academy_request(client):
    emp = create_employee('Any of')
    resp = client.post(f'/academy/employees/{emp.id}/uprank-request', json={'target_rank': 'Junior Officer'},
                       headers=jwt_headers(1, [UPRANK_REQUEST]))
    # authorised, but nothing completed yet
    assert resp.status_code == 400
    assert resp.get_json()['error']['kind'] == 'NotEligibleError'


def test_login_token_without_roles_is_denied(client):
    ensure_user('nobody')
    token = client.post('/iam/auth/login', json={'username': 'nobody', 'password': 'pw'}).get_json()['access_token']
    headers = {'Authorization': f'Bearer {token}'}
    assert client.get('/hr/applications', headers=headers).status_code == 403
    seed_user_with_role('recruiter', 'Human Resources', [HR_MANAGE])
    token = client.post('/iam/auth/login', json={'username': 'recruiter', 'password': 'pw'}).get_json()['access_token']
    resp = client.post('/hr/applications', json={'applicant_name': 'Jane'}, headers={'Authorization': f'Bearer {token}'})
    assert resp.status_code != 403
