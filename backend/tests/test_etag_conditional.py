from personnel.constants.permissions import EMPLOYEES_VIEW, EMPLOYEES_RANK, SANCTIONS_VIEW, SANCTIONS_MANAGE
from tests.test_utils_seed import create_employee, jwt_headers


def test_etag_conditional_employees(client):
    create_employee('Etag One', level=2, badge='G-01')
    create_employee('Etag Two', level=6, badge='S-01')
    headers = jwt_headers(1, [EMPLOYEES_VIEW])
    first = client.get('/employees?limit=5', headers=headers)
    assert first.status_code == 200
    etag = first.headers.get('ETag')
    assert etag
    assert first.get_json()['pagination'] == {'total': 2, 'limit': 5, 'offset': 0, 'returned': 2}

    second = client.get('/employees?limit=5', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304
    assert second.headers.get('ETag') == etag
    lm = first.headers.get('Last-Modified')
    if lm:
        third = client.get('/employees?limit=5', headers={**headers, 'If-Modified-Since': lm})
        assert third.status_code == 304

    # a different page is a different representation
    other = client.get('/employees?limit=1', headers={**headers, 'If-None-Match': etag})
    assert other.status_code == 200


def test_etag_changes_after_mutation(client):
    emp = create_employee('Mutated', level=2, badge='G-03')
    headers = jwt_headers(1, [EMPLOYEES_VIEW, EMPLOYEES_RANK])
    first = client.get(f'/employees/{emp.id}', headers=headers)
    etag = first.headers['ETag']
    assert client.get(f'/employees/{emp.id}', headers={**headers, 'If-None-Match': etag}).status_code == 304
    head = client.head(f'/employees/{emp.id}', headers=headers)
    assert head.status_code == 200 and head.headers['ETag'] == etag and head.data == b''

    assert client.post(f'/employees/{emp.id}/promote', json={}, headers=headers).status_code == 200
    after = client.get(f'/employees/{emp.id}', headers={**headers, 'If-None-Match': etag})
    assert after.status_code == 200
    assert after.get_json()['rank_level'] == 3


def test_etag_conditional_sanctions(client):
    emp = create_employee('Sanctioned')
    headers = jwt_headers(1, [SANCTIONS_VIEW, SANCTIONS_MANAGE])
    client.post('/sanctions', json={'employee_id': emp.id, 'reason': 'Late', 'warning': True}, headers=headers)
    first = client.get('/sanctions', headers=headers)
    assert first.status_code == 200
    etag = first.headers['ETag']
    second = client.get('/sanctions', headers={**headers, 'If-None-Match': etag})
    assert second.status_code == 304


def test_invalid_sort_and_pagination(client):
    headers = jwt_headers(1, [EMPLOYEES_VIEW])
    assert client.get('/employees?sort=-salary', headers=headers).status_code == 400
    assert client.get('/employees?limit=abc', headers=headers).status_code == 400
    resp = client.get('/employees?limit=1000', headers=headers)
    assert resp.get_json()['pagination']['limit'] == 200
