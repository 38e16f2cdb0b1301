"""
Domain errors raised by the visitor approval core.
Routers translate these into HTTP responses; services never build responses themselves.
"""

from app.models.visitor import VisitorStatus


class VisitorWorkflowError(Exception):
    """Base class for approval workflow failures."""


class VisitorNotFound(VisitorWorkflowError):
    def __init__(self, visitor_id):
        super().__init__(f"Visitor {visitor_id} not found")
        self.visitor_id = visitor_id


class InvalidToken(VisitorWorkflowError):
    """Email action token failed verification (wrong, expired or malformed)."""

    def __init__(self, visitor_id):
        super().__init__("Invalid or expired action link")
        self.visitor_id = visitor_id


class AlreadyProcessed(VisitorWorkflowError):
    """
    A single-use decision was already taken, or another writer changed the
    visitor first. Expected on double submission; not a failure of the system.
    """

    def __init__(self, visitor_id, current_status: VisitorStatus):
        super().__init__(f"Visitor {visitor_id} has already been {current_status.label}")
        self.visitor_id = visitor_id
        self.current_status = current_status


class IllegalTransition(VisitorWorkflowError):
    def __init__(self, visitor_id, current_status: VisitorStatus, target_status: VisitorStatus):
        super().__init__(
            f"Visitor {visitor_id} cannot move from {current_status.value} to {target_status.value}"
        )
        self.visitor_id = visitor_id
        self.current_status = current_status
        self.target_status = target_status
