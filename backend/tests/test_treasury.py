import random
import pytest
from sqlalchemy.exc import IntegrityError
from personnel import get_db
from personnel.constants.permissions import TREASURY_VIEW, TREASURY_MANAGE
from personnel.errors import InsufficientFundsError, InvalidAmountError, ValidationError, PermissionDenied
from personnel.models.treasury import Treasury, TreasuryTransaction
from personnel.services import treasury
from personnel.services.unit_of_work import commit_and_dispatch
from personnel.utils.validation import MAX_AMOUNT
from tests.test_utils_seed import actor_for, jwt_headers

FINANCE = actor_for([TREASURY_VIEW, TREASURY_MANAGE], employee_id=None)


def test_overdraw_is_rejected_and_balance_unchanged():
    treasury.deposit(FINANCE, 'REGULAR', 1000, 'Opening balance')
    commit_and_dispatch()
    with pytest.raises(InsufficientFundsError) as exc:
        treasury.withdraw(FINANCE, 'REGULAR', 1500, 'Too much')
    assert exc.value.details['balance'] == 1000
    assert treasury.balances(FINANCE)['regular_cash'] == 1000

    treasury.withdraw(FINANCE, 'REGULAR', 400, 'Equipment')
    commit_and_dispatch()
    assert treasury.balances(FINANCE)['regular_cash'] == 600
    assert get_db().query(TreasuryTransaction).count() == 2


def test_pools_are_independent():
    treasury.deposit(FINANCE, 'UNTRACKED', 250, 'Seized cash')
    commit_and_dispatch()
    body = treasury.balances(FINANCE)
    assert (body['regular_cash'], body['untracked_cash']) == (0, 250)
    with pytest.raises(InsufficientFundsError):
        treasury.withdraw(FINANCE, 'REGULAR', 1, 'Nothing there')


@pytest.mark.parametrize('amount', [0, -5, 1.5, True, '100', None, float('nan'), float('inf'), 10 ** 20])
def test_invalid_amounts(amount):
    with pytest.raises(InvalidAmountError):
        treasury.deposit(FINANCE, 'REGULAR', amount, 'bad')
    assert get_db().query(TreasuryTransaction).count() == 0


def test_whole_float_amount_accepted():
    tx = treasury.deposit(FINANCE, 'REGULAR', 20.0, 'JSON number')
    assert tx.amount == 20 and isinstance(tx.amount, int)


def test_amount_upper_bound():
    assert treasury.deposit(FINANCE, 'REGULAR', MAX_AMOUNT, 'Cap').amount == MAX_AMOUNT
    with pytest.raises(InvalidAmountError):
        treasury.deposit(FINANCE, 'REGULAR', MAX_AMOUNT + 1, 'Over cap')


def test_unknown_pool_and_missing_reason():
    with pytest.raises(ValidationError):
        treasury.deposit(FINANCE, 'OFFSHORE', 10, 'x')
    with pytest.raises(ValidationError):
        treasury.deposit(FINANCE, 'REGULAR', 10, '  ')


def test_requires_manage_permission():
    with pytest.raises(PermissionDenied):
        treasury.deposit(actor_for([TREASURY_VIEW]), 'REGULAR', 10, 'x')


def test_transaction_records_actor():
    actor = actor_for([TREASURY_MANAGE], user_id=7, employee_id=3)
    tx = treasury.deposit(actor, 'REGULAR', 10, 'Donation')
    commit_and_dispatch()
    assert (tx.actor_user_id, tx.actor_employee_id, tx.type) == (7, 3, 'DEPOSIT')


def test_transactions_are_append_only():
    tx = treasury.deposit(FINANCE, 'REGULAR', 10, 'Donation')
    commit_and_dispatch()
    tx.amount = 10000
    with pytest.raises(RuntimeError):
        get_db().flush()
    get_db().rollback()


def test_transactions_cannot_be_deleted():
    tx = treasury.deposit(FINANCE, 'REGULAR', 10, 'Donation')
    commit_and_dispatch()
    get_db().delete(tx)
    with pytest.raises(RuntimeError):
        get_db().flush()
    get_db().rollback()
    assert get_db().query(TreasuryTransaction).count() == 1


@pytest.mark.parametrize('seed', [1, 7, 42, 2024])
def test_balances_match_ledger_over_random_sequences(seed):
    rng = random.Random(seed)
    expected = {'REGULAR': 0, 'UNTRACKED': 0}
    applied = 0
    for _ in range(60):
        pool = rng.choice(Treasury.ALL_POOLS)
        amount = rng.randint(1, 500)
        if rng.random() < 0.5:
            treasury.deposit(FINANCE, pool, amount, 'deposit')
            expected[pool] += amount
        elif amount > expected[pool]:
            with pytest.raises(InsufficientFundsError):
                treasury.withdraw(FINANCE, pool, amount, 'overdraw')
            get_db().rollback()
            continue
        else:
            treasury.withdraw(FINANCE, pool, amount, 'withdraw')
            expected[pool] -= amount
        commit_and_dispatch()
        applied += 1
        body = treasury.balances(FINANCE)
        assert (body['regular_cash'], body['untracked_cash']) == (expected['REGULAR'], expected['UNTRACKED'])

    assert get_db().query(TreasuryTransaction).count() == applied
    report = treasury.verify_ledger(FINANCE)
    for pool, balance in expected.items():
        assert report[pool] == {'balance': balance, 'ledger': balance, 'consistent': True}


def test_ledger_verification():
    treasury.deposit(FINANCE, 'REGULAR', 500, 'a')
    treasury.withdraw(FINANCE, 'REGULAR', 120, 'b')
    treasury.deposit(FINANCE, 'UNTRACKED', 30, 'c')
    commit_and_dispatch()
    report = treasury.verify_ledger(FINANCE)
    assert report['REGULAR'] == {'balance': 380, 'ledger': 380, 'consistent': True}
    assert report['UNTRACKED'] == {'balance': 30, 'ledger': 30, 'consistent': True}

    # a balance changed outside the ledger shows up as inconsistent
    row = get_db().get(Treasury, Treasury.SINGLETON_ID)
    row.regular_cash = 999
    commit_and_dispatch()
    assert treasury.verify_ledger(FINANCE)['REGULAR']['consistent'] is False


def test_negative_balance_blocked_by_constraint():
    row = treasury.get_treasury()
    commit_and_dispatch()
    row.untracked_cash = -1
    with pytest.raises(IntegrityError):
        get_db().flush()
    get_db().rollback()


def test_treasury_api(client):
    headers = jwt_headers(1, [TREASURY_VIEW, TREASURY_MANAGE], employee_id=4)
    r = client.post('/treasury/deposit', json={'pool': 'REGULAR', 'amount': 1000, 'reason': 'Budget'}, headers=headers)
    assert r.status_code == 201, r.get_json()
    assert r.get_json()['balance'] == 1000
    assert r.get_json()['actor_employee_id'] == 4

    r = client.post('/treasury/withdraw', json={'pool': 'REGULAR', 'amount': 1500, 'reason': 'Cars'}, headers=headers)
    assert r.status_code == 400
    err = r.get_json()['error']
    assert err['kind'] == 'InsufficientFundsError' and err['balance'] == 1000

    r = client.post('/treasury/withdraw', json={'pool': 'REGULAR', 'amount': 400, 'reason': 'Cars'}, headers=headers)
    assert r.get_json()['balance'] == 600

    r = client.get('/treasury', headers=headers)
    assert r.get_json()['regular_cash'] == 600

    r = client.get('/treasury/transactions?pool=REGULAR', headers=headers)
    assert [t['amount'] for t in r.get_json()['data']] == [400, 1000]

    r = client.get('/treasury/verify', headers=headers)
    assert r.get_json()['REGULAR']['consistent'] is True

    r = client.post('/treasury/deposit', json={'pool': 'REGULAR', 'amount': 1000, 'reason': 'x'},
                    headers=jwt_headers(2, [TREASURY_VIEW]))
    assert r.status_code == 403


def test_non_finite_and_oversized_amounts_over_http(client):
    headers = jwt_headers(1, [TREASURY_VIEW, TREASURY_MANAGE])
    r = client.post('/treasury/deposit', data='{"pool": "REGULAR", "amount": NaN, "reason": "x"}',
                    content_type='application/json', headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error']['kind'] == 'InvalidAmountError'
    r = client.post('/treasury/deposit', json={'pool': 'REGULAR', 'amount': 10 ** 20, 'reason': 'x'}, headers=headers)
    assert r.status_code == 400
    assert r.get_json()['error']['kind'] == 'InvalidAmountError'
    assert get_db().query(TreasuryTransaction).count() == 0
