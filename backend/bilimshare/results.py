"""
Result values returned by interaction handlers.
"""
from dataclasses import dataclass
from typing import Any, Optional

from .state import Failed

UNAUTHENTICATED = 'unauthenticated'
FORBIDDEN = 'forbidden'
INVALID = 'invalid'
UNCONFIRMED = 'unconfirmed'
NOT_FOUND = 'not_found'
STORE = 'store'
TRANSPORT = 'transport'


@dataclass(frozen=True)
class HandlerResult:
    ok: bool
    message: str = ''
    entity: Any = None
    code: Optional[str] = None
    action: Any = None

    @classmethod
    def success(cls, message='', entity=None, action=None):
        return cls(ok=True, message=message, entity=entity, action=action)

    @classmethod
    def fault(cls, code, message):
        return cls(ok=False, message=message, code=code, action=Failed(message))
