from decimal import Decimal

from fastapi import HTTPException, status


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class BadRequestError(HTTPException):
    def __init__(self, detail: str = "Bad request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Access Denied."):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class UserNotFound(NotFoundError):
    def __init__(self, detail: str = "User not found"):
        super().__init__(detail)


class AgentNotFound(NotFoundError):
    def __init__(self, detail: str = "Agent not found"):
        super().__init__(detail)


class PropertyNotFound(NotFoundError):
    def __init__(self, detail: str = "Property not found"):
        super().__init__(detail)


class AppointmentNotFound(NotFoundError):
    def __init__(self, detail: str = "Appointment not found"):
        super().__init__(detail)


class RequestNotFound(NotFoundError):
    def __init__(
        self, detail: str = "Agent appointment request not found or not accepted."
    ):
        super().__init__(detail)


class NoAgentsAvailable(NotFoundError):
    def __init__(self, detail: str = "No agents available for this property location."):
        super().__init__(detail)


class DuplicateBookingConflict(ConflictError):
    def __init__(
        self,
        detail: str = "You already have an appointment (pending or accepted) "
        "at this time for this property.",
    ):
        super().__init__(detail)


class AgentScheduleConflict(ConflictError):
    pass


class AppointmentAlreadyAssigned(ConflictError):
    def __init__(self, detail: str = "Appointment has already been assigned to another agent."):
        super().__init__(detail)


class AgentAlreadyExists(ConflictError):
    def __init__(self, detail: str = "Agent application already exists for this user"):
        super().__init__(detail)


class InvalidTimeRange(BadRequestError):
    def __init__(self, detail: str = "End time must be after start time."):
        super().__init__(detail)


class AlreadyProcessed(BadRequestError):
    def __init__(self, detail: str = "Request has already been processed"):
        super().__init__(detail)


class AlreadyInTargetStatus(BadRequestError):
    def __init__(self, status_value: str):
        super().__init__(f"Appointment is already {status_value}.")


class CommissionAlreadyApplied(BadRequestError):
    def __init__(
        self, detail: str = "Commission has already been added for this appointment."
    ):
        super().__init__(detail)


class VisitAmountNotConfigured(BadRequestError):
    def __init__(self, detail: str = "Visit amount is not set for this agent."):
        super().__init__(detail)


class InvalidAmount(BadRequestError):
    def __init__(self, detail: str = "Payout amount must be greater than 0"):
        super().__init__(detail)


class InsufficientBalance(BadRequestError):
    def __init__(self, available: Decimal, requested: Decimal, currency: str = "SAR"):
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient wallet balance. Available: {currency} {available}, "
            f"Requested: {currency} {requested}"
        )


class Forbidden(ForbiddenError):
    def __init__(self, detail: str = "You don't have access to this request"):
        super().__init__(detail)
