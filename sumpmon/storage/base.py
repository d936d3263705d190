from __future__ import annotations

# History logs written by the monitor
SERVICE = "service"
STATE = "state"
DUTY = "duty"
IN_FLOW = "in-flow"

LOGS = (SERVICE, STATE, DUTY, IN_FLOW)

FIELD = "value"


class PersistenceError(Exception):
    pass


class PersistenceWriteError(PersistenceError):
    """A history append (or the atomic OFF batch) failed."""


def log_key(namespace: str, log: str) -> str:
    """Store key of a history log, e.g. ``sump:in-flow.hist``."""
    return f"{namespace}:{log}.hist"
