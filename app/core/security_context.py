"""
Request-scoped security context.

Holds who the caller is for the duration of a request (or any other unit of
work). The authentication middleware fills it; the permission enforcement
layer reads it. Values live in a ContextVar, so concurrent requests never see
each other's identity.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(frozen=True)
class Authentication:
    username: Optional[str]
    authenticated: bool = False


ANONYMOUS = Authentication(username=None, authenticated=False)

_authentication_var: ContextVar[Authentication] = ContextVar("authentication", default=ANONYMOUS)


def get_authentication() -> Authentication:
    return _authentication_var.get()


def current_identity() -> Optional[str]:
    """Username of the authenticated caller, or None."""
    auth = _authentication_var.get()
    if not auth.authenticated or not auth.username:
        return None
    return auth.username


@contextmanager
def authenticated_as(username: Optional[str]) -> Iterator[Authentication]:
    """
    Run a block as the given user.

    Usage:
        with authenticated_as("jkim"):
            await create_school(db, payload)
    """
    auth = Authentication(username=username, authenticated=bool(username))
    token = _authentication_var.set(auth)
    try:
        yield auth
    finally:
        _authentication_var.reset(token)
