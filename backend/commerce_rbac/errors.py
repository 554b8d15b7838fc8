"""Domain exceptions raised by the authorization core.

Only malformed input raises. Expected denials are returned as values
(``False`` from capability/page checks, ``DENIED`` from the scoping engine).
"""
from __future__ import annotations


class AuthorizationError(Exception):
    """Base class for programming/data-integrity errors in the authz core."""


class InvalidRoleError(AuthorizationError, ValueError):
    def __init__(self, value):
        super().__init__(f'Invalid role: {value!r}')
        self.value = value


class UnknownCapabilityError(AuthorizationError, KeyError):
    def __init__(self, name):
        super().__init__(name)
        self.name = name

    def __str__(self):
        return f'Unknown capability: {self.name!r}'


class UnknownResourceError(AuthorizationError, ValueError):
    pass


__all__ = ['AuthorizationError', 'InvalidRoleError', 'UnknownCapabilityError', 'UnknownResourceError']
