"""Academy progression tracker.

Completion is stored per employee x module. Eligibility for a category requires every
active module of that category to be complete, and a category with no active modules
never grants eligibility.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from personnel import get_db
from personnel.constants.permissions import ACADEMY_VIEW, ACADEMY_MANAGE, UPRANK_REQUEST
from personnel.constants.ranks import level_for_rank
from personnel.errors import DuplicateRequestError, NotEligibleError, NotFoundError, ValidationError
from personnel.models.academy import AcademyModule, AcademyProgress, UprankRequest
from personnel.services.context import ActorContext
from personnel.services.events import emit_incentive
from personnel.services.ranks import get_employee
from personnel.utils.timeutil import utcnow
from personnel.utils.validation import require_text, optional_text, validate_status

log = logging.getLogger(__name__)


def target_rank_for_category(category: str) -> str:
    try:
        return AcademyModule.TARGET_RANKS[category]
    except KeyError:
        raise ValueError(f'Unknown academy category {category!r}')


def category_for_target_rank(target_rank: str) -> Optional[str]:
    for category, rank in AcademyModule.TARGET_RANKS.items():
        if rank == target_rank:
            return category
    return None


def _active_modules(category: Optional[str] = None) -> List[AcademyModule]:
    session = get_db()
    q = select(AcademyModule).where(AcademyModule.is_active.is_(True))
    if category:
        q = q.where(AcademyModule.category==category)
    return session.execute(q.order_by(AcademyModule.sort_order.asc(), AcademyModule.id.asc())).scalars().all()


def _completed_module_ids(employee_id: int) -> set:
    session = get_db()
    return set(session.execute(
        select(AcademyProgress.module_id).where(
            AcademyProgress.employee_id==employee_id, AcademyProgress.completed.is_(True)
        )
    ).scalars())


def get_module(module_id: int) -> AcademyModule:
    module = get_db().get(AcademyModule, module_id)
    if not module:
        raise NotFoundError(f'Academy module {module_id} not found')
    return module


# --- module catalog ---

def list_modules(actor: ActorContext, category: Optional[str] = None, include_inactive: bool = False):
    actor.require(ACADEMY_VIEW)
    session = get_db()
    q = session.query(AcademyModule)
    if category:
        validate_status(category, AcademyModule.ALL_CATEGORIES, 'category')
        q = q.filter(AcademyModule.category==category)
    if not include_inactive:
        q = q.filter(AcademyModule.is_active.is_(True))
    return q


def create_module(actor: ActorContext, name: str, category: str, description: Optional[str] = None,
                  sort_order: int = 0) -> AcademyModule:
    actor.require(ACADEMY_MANAGE)
    module = AcademyModule(
        name=require_text(name, 'name'),
        category=validate_status(category, AcademyModule.ALL_CATEGORIES, 'category'),
        description=optional_text(description),
        sort_order=int(sort_order or 0),
        is_active=True,
    )
    session = get_db()
    session.add(module)
    session.flush()
    return module


def update_module(actor: ActorContext, module_id: int, **changes) -> AcademyModule:
    actor.require(ACADEMY_MANAGE)
    module = get_module(module_id)
    if 'name' in changes:
        module.name = require_text(changes['name'], 'name')
    if 'description' in changes:
        module.description = optional_text(changes['description'])
    if 'sort_order' in changes:
        module.sort_order = int(changes['sort_order'] or 0)
    if 'is_active' in changes:
        module.is_active = bool(changes['is_active'])
    if 'category' in changes:
        module.category = validate_status(changes['category'], AcademyModule.ALL_CATEGORIES, 'category')
    get_db().flush()
    return module


# --- progress ---

def employee_progress(actor: ActorContext, employee_id: int) -> Dict[str, Any]:
    actor.require(ACADEMY_VIEW)
    get_employee(employee_id)
    session = get_db()
    rows = {
        p.module_id: p for p in session.execute(
            select(AcademyProgress).where(AcademyProgress.employee_id==employee_id)
        ).scalars()
    }
    categories = {}
    for category in AcademyModule.ALL_CATEGORIES:
        modules = []
        for m in _active_modules(category):
            p = rows.get(m.id)
            modules.append({
                'module_id': m.id,
                'name': m.name,
                'sort_order': m.sort_order,
                'completed': bool(p and p.completed),
                'completed_at': p.completed_at if p else None,
                'completed_by_id': p.completed_by_id if p else None,
            })
        categories[category] = {
            'target_rank': target_rank_for_category(category),
            'modules': modules,
            'completed': sum(1 for m in modules if m['completed']),
            'total': len(modules),
        }
    return {'employee_id': employee_id, 'categories': categories}


def toggle_module_completion(actor: ActorContext, employee_id: int, module_id: int) -> AcademyProgress:
    """Flip completion; the first toggle creates the record as completed."""
    actor.require(ACADEMY_MANAGE)
    get_employee(employee_id)
    module = get_module(module_id)
    session = get_db()
    progress = session.execute(
        select(AcademyProgress).where(
            AcademyProgress.employee_id==employee_id, AcademyProgress.module_id==module_id
        )
    ).scalar_one_or_none()
    if progress is None:
        progress = AcademyProgress(employee_id=employee_id, module_id=module_id, completed=False)
        session.add(progress)
    progress.completed = not progress.completed
    if progress.completed:
        progress.completed_at = utcnow()
        progress.completed_by_id = actor.user_id
    else:
        progress.completed_at = None
        progress.completed_by_id = None
    session.flush()
    if progress.completed:
        # false -> true only; un-completing never reverses a payment
        emit_incentive('ACADEMY_MODULE_COMPLETED', actor.employee_id,
                       f'Module {module.name} completed for employee #{employee_id}', progress.id, 'AcademyProgress')
    return progress


def compute_eligibility(employee_id: int) -> Dict[str, Dict[str, Any]]:
    completed_ids = _completed_module_ids(employee_id)
    result = {}
    for category in AcademyModule.ALL_CATEGORIES:
        active = _active_modules(category)
        done = [m for m in active if m.id in completed_ids]
        result[category] = {
            'target_rank': target_rank_for_category(category),
            'eligible': bool(active) and len(done) == len(active),
            'completed': len(done),
            'total': len(active),
        }
    return result


def eligibility(actor: ActorContext, employee_id: int) -> Dict[str, Dict[str, Any]]:
    actor.require(ACADEMY_VIEW)
    get_employee(employee_id)
    return compute_eligibility(employee_id)


def has_pending_request(employee_id: int) -> bool:
    session = get_db()
    return session.execute(
        select(UprankRequest.id).where(
            UprankRequest.employee_id==employee_id, UprankRequest.status==UprankRequest.STATUS_PENDING
        )
    ).first() is not None


def request_uprank(actor: ActorContext, employee_id: int, target_rank: str) -> UprankRequest:
    """Create a PENDING academy uprank request once the matching category is complete."""
    actor.require_any(ACADEMY_MANAGE, UPRANK_REQUEST)
    employee = get_employee(employee_id)
    category = category_for_target_rank(target_rank)
    if category is None:
        raise ValidationError(f'{target_rank!r} is not an academy target rank')
    target_level = level_for_rank(target_rank)
    if target_level is None or target_level <= employee.rank_level:
        raise NotEligibleError(
            f'Employee {employee_id} already holds {employee.rank}, {target_rank} is not a promotion',
            category=category, current_level=employee.rank_level,
        )
    if not compute_eligibility(employee_id)[category]['eligible']:
        raise NotEligibleError(f'Employee {employee_id} has not completed every {category} module', category=category)
    if has_pending_request(employee_id):
        raise DuplicateRequestError(f'Employee {employee_id} already has a pending uprank request')
    names = [m.name for m in _active_modules(category)]
    req = UprankRequest(
        employee_id=employee_id,
        current_rank=employee.rank,
        target_rank=target_rank,
        reason=f'Academy training completed: {", ".join(names)}',
        is_academy_request=True,
        status=UprankRequest.STATUS_PENDING,
        requested_by_id=actor.user_id,
    )
    session = get_db()
    session.add(req)
    session.flush()
    log.info('academy uprank request #%s for employee #%s -> %s', req.id, employee_id, target_rank)
    return req


__all__ = [
    'target_rank_for_category', 'category_for_target_rank', 'get_module', 'list_modules', 'create_module',
    'update_module', 'employee_progress', 'toggle_module_completion', 'compute_eligibility', 'eligibility',
    'has_pending_request', 'request_uprank',
]
