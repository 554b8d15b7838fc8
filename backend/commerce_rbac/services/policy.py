from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple
from flask_jwt_extended import get_jwt
from commerce_rbac.constants.roles import Role, ALL_ROLES, ROLE_CAPABILITIES
from commerce_rbac.errors import UnknownCapabilityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    """Authenticated actor for the current request. Never persisted."""
    id: int
    email: str
    name: str
    role: Role
    company_id: Optional[int] = None

    def __post_init__(self):
        object.__setattr__(self, 'role', Role.parse(self.role))

    @property
    def is_super_admin(self) -> bool:
        return self.role is Role.SUPER_ADMIN

    def can(self, capability: str) -> bool:
        return has_capability(self.role, capability)


def has_capability(role, capability: str) -> bool:
    row = ROLE_CAPABILITIES[Role.parse(role)]
    try:
        return row[capability]
    except KeyError:
        raise UnknownCapabilityError(capability) from None


def get_capabilities(role) -> Mapping[str, bool]:
    return ROLE_CAPABILITIES[Role.parse(role)]


def roles_with_capability(capability: str) -> Tuple[Role, ...]:
    return tuple(r for r in ALL_ROLES if has_capability(r, capability))


def principal_claims(user) -> Dict[str, Any]:
    """Additional JWT claims describing a user; identity (sub) carries the id."""
    return {
        'email': user.email,
        'name': user.name,
        'role': Role.parse(user.role).value,
        'company_id': user.company_id,
    }


def principal_from_claims(claims: Mapping[str, Any]) -> Principal:
    try:
        role = Role.parse(claims.get('role'))
    except ValueError:
        logger.error('Token for subject %s carries invalid role %r', claims.get('sub'), claims.get('role'))
        raise
    company_id = claims.get('company_id')
    return Principal(
        id=int(claims['sub']),
        email=claims.get('email') or '',
        name=claims.get('name') or '',
        role=role,
        company_id=int(company_id) if company_id is not None else None,
    )


def current_principal() -> Principal:
    return principal_from_claims(get_jwt())
