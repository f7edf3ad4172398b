"""callgate — Request validation and authorization for typed remote methods.

Services declare, per method, an ordered list of validation and
authorization rules plus an accessor that extracts typed arguments from a
call.  The engine evaluates the rules against each incoming call and
returns an accept/reject verdict with a diagnostic reason.

Layers (bottom to top):
    1. Values      — recursively-nested tagged value model
    2. Validation  — structural checks over value trees
    3. Security    — rate limiter, roles, sessions, auth providers
    4. Engine      — rules, method validator registry (Inspector)
    5. Policy/CLI  — YAML policy documents and the ``callgate`` command
"""

__version__ = "0.1.0"
__author__ = "callgate contributors"
__license__ = "Apache-2.0"

from callgate.engine import CallContext, Inspector, Verdict
from callgate.security import Caller, RateLimiter, SessionManager

__all__ = [
    "__version__",
    "CallContext",
    "Caller",
    "Inspector",
    "RateLimiter",
    "SessionManager",
    "Verdict",
]
