from functools import wraps
from flask_jwt_extended import verify_jwt_in_request, get_jwt, get_jwt_identity
from personnel.services.context import ActorContext


def current_actor() -> ActorContext:
    verify_jwt_in_request()
    return ActorContext.from_claims(get_jwt_identity(), get_jwt())


def require_permissions(*codes: str):
    """Verify the token, check every code and pass the resolved ``actor`` to the view."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            actor = current_actor()
            actor.require(*codes)
            kwargs['actor'] = actor
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_permission(*codes: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            actor = current_actor()
            actor.require_any(*codes)
            kwargs['actor'] = actor
            return fn(*args, **kwargs)
        return wrapper
    return outer
