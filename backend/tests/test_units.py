import pytest
from personnel import get_db
from personnel.constants.permissions import EMPLOYEES_VIEW, UNITS_MANAGE
from personnel.errors import ExternalSyncFailure, IdentityNotLinkedError, ValidationError
from personnel.models.employee import Employee
from personnel.services import units
from tests.test_utils_seed import actor_for, create_employee, create_unit, jwt_headers

MANAGER = actor_for([EMPLOYEES_VIEW, UNITS_MANAGE])


def _catalog():
    ia = create_unit('Internal Affairs', [('Member', 'r-ia', True), ('Lead', 'r-ia-lead', False)], sort_order=0)
    det = create_unit('Detectives', [('Detective', 'r-det', True)], sort_order=1)
    return ia, det


def test_set_unit_roles_sends_only_the_diff(integrations):
    ia, det = _catalog()
    emp = create_employee('Unit member', level=3, discord_id='42')
    # 'rank-role' is not a unit role and must survive reconciliation
    integrations.roles.members['42'] = {'r-ia', 'rank-role'}
    ia_member, ia_lead = ia.roles
    result = units.set_unit_roles(MANAGER, emp.id, [ia_lead.id, det.roles[0].id], integrations.roles)
    assert result['added'] == ['r-det', 'r-ia-lead']
    assert result['removed'] == ['r-ia']
    assert result['department'] == 'Internal Affairs, Detectives'
    assert integrations.roles.members['42'] == {'r-ia-lead', 'r-det', 'rank-role'}
    assert len(integrations.roles.calls) == 1


def test_set_unit_roles_no_change_skips_store(integrations):
    ia, _ = _catalog()
    emp = create_employee('Steady', level=3, discord_id='43')
    integrations.roles.members['43'] = {'r-ia'}
    result = units.set_unit_roles(MANAGER, emp.id, [ia.roles[0].id], integrations.roles)
    assert result['added'] == [] and result['removed'] == []
    assert integrations.roles.calls == []


def test_empty_set_falls_back_to_entry_department(integrations):
    _catalog()
    emp = create_employee('Cleared', level=3, discord_id='44')
    integrations.roles.members['44'] = {'r-det'}
    result = units.set_unit_roles(MANAGER, emp.id, [], integrations.roles)
    assert result['removed'] == ['r-det']
    assert result['department'] == 'Patrol'


def test_store_failure_leaves_department_untouched(integrations):
    ia, _ = _catalog()
    emp = create_employee('Unlucky', level=3, discord_id='45')
    integrations.roles.fail_with = 'rate limited'
    with pytest.raises(ExternalSyncFailure):
        units.set_unit_roles(MANAGER, emp.id, [ia.roles[0].id], integrations.roles)
    get_db().rollback()
    assert get_db().get(Employee, emp.id).department == 'Patrol'


def test_unknown_ids_and_unlinked_identity(integrations):
    _catalog()
    linked = create_employee('Linked', level=3, discord_id='46')
    unlinked = create_employee('Unlinked', level=3)
    with pytest.raises(ValidationError):
        units.set_unit_roles(MANAGER, linked.id, [9999], integrations.roles)
    with pytest.raises(IdentityNotLinkedError):
        units.set_unit_roles(MANAGER, unlinked.id, [], integrations.roles)


def test_units_grouped_base_role_first():
    create_unit('Detectives', [('Lead', 'r-det-lead', False), ('Detective', 'r-det', True)], sort_order=1)
    create_unit('Internal Affairs', [('Member', 'r-ia', True)], sort_order=0)
    groups = units.list_units(MANAGER)
    assert [g['unit'] for g in groups] == ['Internal Affairs', 'Detectives']
    assert [r['label'] for r in groups[1]['roles']] == ['Detective', 'Lead']


def test_units_api_round_trip(client, integrations):
    ia, det = _catalog()
    emp = create_employee('Api member', level=3, discord_id='47')
    headers = jwt_headers(1, [EMPLOYEES_VIEW, UNITS_MANAGE])
    resp = client.put(f'/employees/{emp.id}/units', json={'unit_role_ids': [det.roles[0].id]}, headers=headers)
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['added'] == ['r-det']
    listing = client.get(f'/employees/{emp.id}/units', headers=headers).get_json()
    flags = {r['label']: r['active'] for g in listing['data'] for r in g['roles']}
    assert flags == {'Member': False, 'Lead': False, 'Detective': True}
    assert client.get(f'/employees/{emp.id}', headers=headers).get_json()['department'] == 'Detectives'


def test_units_api_store_failure_maps_to_502(client, integrations):
    ia, _ = _catalog()
    emp = create_employee('Api unlucky', level=3, discord_id='48')
    integrations.roles.fail_with = 'platform down'
    resp = client.put(f'/employees/{emp.id}/units', json={'unit_role_ids': [ia.roles[0].id]},
                      headers=jwt_headers(1, [UNITS_MANAGE]))
    assert resp.status_code == 502
    assert resp.get_json()['error']['kind'] == 'ExternalSyncFailure'
