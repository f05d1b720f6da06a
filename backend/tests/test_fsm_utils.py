import pytest
from personnel.errors import InvalidStateTransitionError
from personnel.utils.fsm import TransitionValidator
from personnel.services.applications import APPLICATION_FSM
from personnel.services.ranks import EMPLOYEE_FSM


def test_transition_validator_allows_valid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    assert fsm.assert_can_transition('A', 'B') is True
    assert fsm.is_terminal('B') is True


def test_transition_validator_blocks_invalid():
    fsm = TransitionValidator({'A': {'B'}, 'B': set()})
    with pytest.raises(InvalidStateTransitionError) as exc:
        fsm.assert_can_transition('A', 'C')
    assert exc.value.details == {'current': 'A', 'target': 'C'}
    assert fsm.can_transition('UNKNOWN', 'A') is False


def test_application_states_never_move_backwards():
    order = ['CRITERIA', 'QUESTIONS', 'ONBOARDING', 'COMPLETED']
    for i, state in enumerate(order):
        for earlier in order[:i]:
            assert not APPLICATION_FSM.can_transition(state, earlier)
    assert APPLICATION_FSM.is_terminal('COMPLETED')
    assert APPLICATION_FSM.is_terminal('REJECTED')


def test_terminated_employee_is_terminal():
    assert EMPLOYEE_FSM.is_terminal('TERMINATED')
    assert EMPLOYEE_FSM.can_transition('ACTIVE', 'TERMINATED')


def test_openapi_carries_transitions(client):
    body = client.get('/openapi.json').get_json()
    app_schema = body['components']['schemas']['Application']
    assert 'CRITERIA' in app_schema['x-transitions']
    assert app_schema['x-transition-graph']['CRITERIA'] == ['QUESTIONS', 'REJECTED']
