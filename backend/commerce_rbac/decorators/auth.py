from functools import wraps
from flask import abort
from flask_jwt_extended import verify_jwt_in_request
from commerce_rbac.services.policy import current_principal


def require_capability(*capabilities: str):
    """Reject with 401 when no token is present and 403 when any capability is missing."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            principal = current_principal()
            if not all(principal.can(c) for c in capabilities):
                abort(403, description='Missing capability')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_any_capability(*capabilities: str):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            principal = current_principal()
            if not any(principal.can(c) for c in capabilities):
                abort(403, description='Missing capability')
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_principal(fn):
    """Authenticate only; scoping decides what the principal may see."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        current_principal()
        return fn(*args, **kwargs)
    return wrapper
