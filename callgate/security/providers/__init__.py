"""Authentication providers consulted by the SessionManager's async API."""

from callgate.security.providers.base import AuthProvider, NullAuthProvider
from callgate.security.providers.static import StaticAuthProvider, StaticIdentity

__all__ = ["AuthProvider", "NullAuthProvider", "StaticAuthProvider", "StaticIdentity"]
