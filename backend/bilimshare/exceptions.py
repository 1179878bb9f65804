"""
Faults raised by the store gateway.

Handlers and the fetch cycle catch these at their boundary and turn them
into result values; nothing here is meant to reach the HTTP layer raw.
"""


class StoreError(Exception):
    """
    The backing store reported a fault.

    transport=True marks connection-level failures (store unreachable,
    statement timeout) whose message is not shown to users.
    """

    def __init__(self, message, transport=False):
        super().__init__(message)
        self.message = message
        self.transport = transport


class NotFound(StoreError):
    """The addressed row does not exist."""
