#!/usr/bin/env python
"""Idempotent seed script for permissions, roles, the HR catalog and incentive configs.

Usage:
    python backend/scripts/seed.py               # seed normally
    python backend/scripts/seed.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed.py --skip-catalog --export-json roles.json
"""
from __future__ import annotations
import os, sys, argparse, textwrap, json, hashlib, logging
from sqlalchemy import select, inspect

# Allow running from repo root or backend/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from personnel import create_app, get_db, load_models  # type: ignore
from personnel.constants.permissions import SERVICE_ACTIONS, ROLE_PRESETS, build_all_permission_codes
from personnel.models.authz import Permission, Role, RolePermission, User, UserRole
from personnel.models.application import ApplicationCriterion, ApplicationQuestion, OnboardingItem
from personnel.models.academy import AcademyModule
from personnel.models.bonus import BonusConfig
from personnel.models.unit import Unit, UnitRole
from personnel.services.treasury import get_treasury
from seeds import defaults

log = logging.getLogger('personnel.seed')

ADMIN_ROLE = 'Administrator'


def ensure_permissions(session):
    existing = {p.code for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            code = f"{svc}.{act}"
            if code not in existing:
                session.add(Permission(code=code, service=svc, action=act, description=f'{svc} - {act}'))
                created += 1
    session.flush()
    return created


def ensure_roles(session):
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in existing_roles:
            role = Role(name=role_name, is_system=True, description=role_name)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    all_codes = set(build_all_permission_codes())
    for role_name, raw_codes in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        desired_codes = all_codes if '*' in raw_codes else set(raw_codes)
        current_codes = {rp.permission.code for rp in role.permissions}
        to_add = desired_codes - current_codes
        if not to_add:
            continue
        perms_map = {p.code: p for p in session.execute(select(Permission).where(Permission.code.in_(list(to_add)))).scalars()}
        for code in sorted(to_add):
            if code not in perms_map:
                log.warning('Missing permission referenced by role %s: %s', role_name, code)
                continue
            session.add(RolePermission(role=role, permission=perms_map[code]))
    session.flush()
    return created


def ensure_initial_admin(session):
    admin_role = session.execute(select(Role).where(Role.name==ADMIN_ROLE)).scalar_one_or_none()
    if not admin_role:
        log.warning('%s role missing; skipping admin user creation', ADMIN_ROLE)
        return None
    username = os.getenv('SEED_ADMIN_USERNAME', 'admin')
    user = session.execute(select(User).where(User.username==username)).scalar_one_or_none()
    if user:
        return None
    user = User(username=username, display_name='Administrator', is_active=True)
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    session.add(UserRole(user_id=user.id, role_id=admin_role.id))
    session.flush()
    log.info('Created initial admin user %s with temporary password.', username)
    return user


def _ensure_texts(session, model, column, values):
    existing = set(session.execute(select(getattr(model, column))).scalars())
    created = 0
    for i, value in enumerate(values):
        if value not in existing:
            session.add(model(**{column: value, 'sort_order': i, 'is_active': True}))
            created += 1
    return created


def ensure_catalog(session):
    """Criteria, questions, onboarding items, academy modules, units and incentive configs."""
    counts = {
        'criteria': _ensure_texts(session, ApplicationCriterion, 'name', defaults.CRITERIA),
        'questions': _ensure_texts(session, ApplicationQuestion, 'question', defaults.QUESTIONS),
        'onboarding': _ensure_texts(session, OnboardingItem, 'label', defaults.ONBOARDING),
        'modules': 0,
        'units': 0,
        'bonus_configs': 0,
    }
    existing_modules = {(m.category, m.name) for m in session.execute(select(AcademyModule)).scalars()}
    for category, modules in defaults.ACADEMY_MODULES.items():
        for i, (name, description) in enumerate(modules):
            if (category, name) not in existing_modules:
                session.add(AcademyModule(name=name, description=description, category=category, sort_order=i, is_active=True))
                counts['modules'] += 1
    existing_units = {u.name for u in session.execute(select(Unit)).scalars()}
    for name, sort_order, roles in defaults.UNITS:
        if name in existing_units:
            continue
        unit = Unit(name=name, sort_order=sort_order, is_active=True)
        unit.roles = [
            UnitRole(label=label, external_role_id=ext_id, is_base=is_base, sort_order=i, is_active=True)
            for i, (label, ext_id, is_base) in enumerate(roles)
        ]
        session.add(unit)
        counts['units'] += 1
    existing_configs = set(session.execute(select(BonusConfig.activity_type)).scalars())
    for activity_type, (display_name, category) in defaults.BONUS_CONFIGS.items():
        if activity_type not in existing_configs:
            session.add(BonusConfig(activity_type=activity_type, display_name=display_name, category=category, amount=0, is_active=True))
            counts['bonus_configs'] += 1
    session.flush()
    get_treasury()
    return counts


def summarize_roles(session):
    rows = []
    for role in session.execute(select(Role)).scalars().all():
        perms = [rp.permission.code for rp in role.permissions]
        rows.append((role.name, len(perms), sorted(perms)[:8]))
    return rows


def print_role_summary(session):
    rows = summarize_roles(session)
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def build_role_permission_map(session):
    mapping = {}
    for role in session.execute(select(Role)).scalars().all():
        mapping[role.name] = sorted({rp.permission.code for rp in role.permissions})
    return mapping


def roles_checksum(role_perm_map) -> str:
    canonical = json.dumps(role_perm_map, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


def seed_all(session, catalog: bool = True):
    result = {
        'permissions': ensure_permissions(session),
        'roles': ensure_roles(session),
    }
    ensure_initial_admin(session)
    if catalog:
        result['catalog'] = ensure_catalog(session)
    return result


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed permissions, roles, HR catalog and incentive configs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed.py\n  dry run: seed.py --dry-run\n  show roles: seed.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--skip-catalog', action='store_true', help='Only seed permissions, roles and the admin user')
    p.add_argument('--export-json', nargs='?', const='-', metavar='FILE', help='Export role->permissions JSON (to FILE or stdout if omitted)')
    p.add_argument('--fail-if-changed', metavar='CHECKSUM', help='Exit 4 if computed roles checksum differs from provided value')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        engine = session.get_bind()
        if not inspect(engine).has_table('permissions'):
            # bootstrap only; real environments run `alembic upgrade head`
            log.warning('schema missing, creating tables from models')
            load_models().metadata.create_all(engine)
        try:
            result = seed_all(session, catalog=not args.skip_catalog)
            role_perm_map = build_role_permission_map(session)
            checksum = roles_checksum(role_perm_map)
            if args.fail_if_changed and checksum != args.fail_if_changed:
                session.rollback()
                print(f"[CHECKSUM] MISMATCH: expected {args.fail_if_changed} got {checksum}")
                sys.exit(4)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) {json.dumps(result, sort_keys=True)}")
            else:
                session.commit()
                print(f"[DONE] {json.dumps(result, sort_keys=True)}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(session)
            if args.export_json is not None:
                payload = {
                    'roles': role_perm_map,
                    'meta': {
                        'distinct_permissions': len({p for plist in role_perm_map.values() for p in plist}),
                        'roles_checksum_sha256': checksum,
                        'role_names_sorted': sorted(role_perm_map.keys()),
                        'dry_run': args.dry_run,
                    }
                }
                if args.export_json == '-':
                    print(json.dumps(payload, indent=2, sort_keys=True))
                else:
                    with open(args.export_json, 'w', encoding='utf-8') as f:
                        json.dump(payload, f, indent=2, sort_keys=True)
                    print(f"[INFO] Exported JSON to {args.export_json}")
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
