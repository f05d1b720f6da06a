import re
from personnel.constants.permissions import ALL_PERMISSION_CODES

RULE_PARAM = re.compile(r'<(?:\w+:)?(\w+)>')


def test_openapi_spec_available(client):
    resp = client.get('/openapi.json')
    assert resp.status_code == 200
    body = resp.get_json()
    assert body['openapi'].startswith('3.')
    assert '/iam/auth/login' in body['paths']
    assert body['paths']['/iam/auth/login']['post']['security'] == []


def test_docs_page(client):
    resp = client.get('/docs')
    assert resp.status_code == 200
    assert b'redoc' in resp.data


def test_lifecycle_schemas_expose_transitions(client):
    schemas = client.get('/openapi.json').get_json()['components']['schemas']
    assert schemas['UprankRequest']['x-transition-graph'] == {
        'PENDING': ['APPROVED', 'REJECTED'], 'APPROVED': [], 'REJECTED': [],
    }
    assert schemas['Sanction']['x-transitions'] == ['ACTIVE', 'REVOKED']
    assert schemas['BonusPayment']['x-transition-graph']['PENDING'] == ['CANCELLED', 'PAID']
    assert 'TERMINATED' in schemas['Employee']['x-transitions']


def test_mutations_document_required_permissions(client):
    paths = client.get('/openapi.json').get_json()['paths']
    assert paths['/employees/{employee_id}/promote']['post']['x-required-permissions'] == ['employees.rank']
    assert paths['/treasury/withdraw']['post']['x-required-permissions'] == ['treasury.manage']
    assert paths['/uprank/requests']['get']['x-required-permissions'] == ['uprank.request', 'uprank.process']
    known = set(ALL_PERMISSION_CODES)
    for path, ops in paths.items():
        for method, op in ops.items():
            for code in op.get('x-required-permissions', []):
                assert code in known, f'{method.upper()} {path} references unknown permission {code}'


def test_documented_paths_exist_as_routes(client, app_instance):
    rules = {}
    for rule in app_instance.url_map.iter_rules():
        rules.setdefault(RULE_PARAM.sub(r'{\1}', rule.rule), set()).update(m.lower() for m in rule.methods)
    paths = client.get('/openapi.json').get_json()['paths']
    for path, ops in paths.items():
        assert path in rules, f'{path} documented but not routed'
        for method in ops:
            assert method in rules[path], f'{method.upper()} {path} documented but not routed'


def test_list_caching_headers_documented(client):
    spec = client.get('/openapi.json').get_json()
    for p in ['/employees', '/hr/applications', '/sanctions', '/treasury/transactions']:
        hdrs = spec['paths'][p]['get']['responses']['200'].get('headers', {})
        for h in ['ETag', 'Last-Modified', 'X-Last-Modified-ISO']:
            assert h in hdrs, f'{p} missing header doc {h}'


def test_openapi_is_deterministic(client):
    first = client.get('/openapi.json').get_data()
    second = client.get('/openapi.json').get_data()
    assert first == second
