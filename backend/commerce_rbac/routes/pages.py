from __future__ import annotations
from flask import Blueprint, request, abort
from commerce_rbac.decorators.auth import require_principal
from commerce_rbac.services.pages import (
    can_access_page, is_known_page, navigation_for, normalize_path, safe_redirect, unauthorized_view,
)
from commerce_rbac.services.policy import current_principal, get_capabilities

pages_bp = Blueprint('pages', __name__)


@pages_bp.get('/pages/access')
@require_principal
def page_access():
    path = request.args.get('path')
    if not path:
        abort(400, description='path required')
    principal = current_principal()
    if not can_access_page(principal.role, path):
        body = unauthorized_view(principal.role, path)
        body['allowed'] = False
        return body, 403
    return {'path': normalize_path(path), 'allowed': True, 'known': is_known_page(path)}


@pages_bp.get('/pages/navigation')
@require_principal
def navigation():
    principal = current_principal()
    return {'role': principal.role.value, 'data': navigation_for(principal.role)}


@pages_bp.get('/pages/redirect')
@require_principal
def redirect_target():
    return {'location': safe_redirect(request.args.get('next'))}


@pages_bp.get('/me/capabilities')
@require_principal
def my_capabilities():
    principal = current_principal()
    return {
        'id': principal.id,
        'role': principal.role.value,
        'company_id': principal.company_id,
        'capabilities': dict(get_capabilities(principal.role)),
    }
