from personnel import get_db
from personnel.constants.permissions import ALL_PERMISSION_CODES, ROLE_PRESETS
from personnel.models.application import ApplicationCriterion, ApplicationQuestion
from personnel.models.academy import AcademyModule
from personnel.models.authz import Permission, User
from personnel.models.bonus import BonusConfig
from personnel.models.treasury import Treasury
from personnel.models.unit import Unit
from personnel.services import academy
from personnel.services.policy import compute_effective_permissions
from scripts.seed import seed_all, build_role_permission_map, roles_checksum, parse_args
from seeds import defaults
from tests.test_utils_seed import create_employee


def test_seed_is_idempotent():
    session = get_db()
    first = seed_all(session)
    session.commit()
    assert first['permissions'] == len(ALL_PERMISSION_CODES)
    assert first['roles'] == len(ROLE_PRESETS)
    assert first['catalog']['criteria'] == 11
    assert first['catalog']['questions'] == 11
    checksum = roles_checksum(build_role_permission_map(session))

    second = seed_all(session)
    session.commit()
    assert second['permissions'] == 0 and second['roles'] == 0
    assert set(second['catalog'].values()) == {0}
    assert roles_checksum(build_role_permission_map(session)) == checksum
    assert session.query(Permission).count() == len(ALL_PERMISSION_CODES)
    assert session.query(ApplicationCriterion).count() == len(defaults.CRITERIA)
    assert session.query(ApplicationQuestion).count() == len(defaults.QUESTIONS)


def test_administrator_gets_every_permission():
    session = get_db()
    seed_all(session, catalog=False)
    session.commit()
    mapping = build_role_permission_map(session)
    assert mapping['Administrator'] == sorted(ALL_PERMISSION_CODES)
    assert 'admin.roles' not in mapping['Management']
    admin = session.query(User).filter_by(username='admin').one()
    assert admin.verify_password('ChangeMe123!')
    assert compute_effective_permissions(admin.id)['perms'] == sorted(ALL_PERMISSION_CODES)
    assert session.query(Unit).count() == 0


def test_catalog_shapes():
    session = get_db()
    seed_all(session)
    session.commit()
    assert session.get(Treasury, Treasury.SINGLETON_ID).regular_cash == 0
    configs = session.query(BonusConfig).all()
    assert {c.activity_type for c in configs} == set(defaults.BONUS_CONFIGS)
    assert all(c.amount == 0 for c in configs)
    junior = session.query(AcademyModule).filter_by(category='JUNIOR_OFFICER').count()
    assert junior == 6
    units = {u.name: u for u in session.query(Unit)}
    assert len(units) == len(defaults.UNITS)
    for unit in units.values():
        assert sum(1 for r in unit.roles if r.is_base) == 1


def test_seeded_modules_gate_junior_officer_eligibility():
    session = get_db()
    seed_all(session)
    session.commit()
    emp = create_employee('Fresh cadet')
    elig = academy.compute_eligibility(emp.id)
    assert elig['JUNIOR_OFFICER'] == {'target_rank': 'Junior Officer', 'eligible': False, 'completed': 0, 'total': 6}


def test_parse_args_flags():
    args = parse_args(['--dry-run', '--skip-catalog', '--export-json'])
    assert args.dry_run and args.skip_catalog
    assert args.export_json == '-'
    defaults_only = parse_args([])
    assert not defaults_only.show_roles
    assert defaults_only.export_json is None and defaults_only.fail_if_changed is None
