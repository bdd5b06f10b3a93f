"""
Domain error taxonomy.

Each error is an HTTPException so services can raise them directly and FastAPI
renders the right status code without per-route translation.
"""

from fastapi import HTTPException


class NotFoundError(HTTPException):
    """Deal, user or post missing, or hidden from the caller"""

    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class ValidationError(HTTPException):
    """Bad target status, missing fields"""

    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=400, detail=detail)


class AuthorizationError(HTTPException):
    """Caller is not allowed to perform the action"""

    def __init__(self, detail: str = "Not authorized"):
        super().__init__(status_code=403, detail=detail)


class ConflictError(HTTPException):
    """Already unlocked, duplicate deal"""

    def __init__(self, detail: str = "Conflict"):
        super().__init__(status_code=409, detail=detail)


class InvalidTransition(ValidationError):
    def __init__(self, current_status: str, target_status: str):
        self.current_status = current_status
        self.target_status = target_status
        super().__init__(f"Cannot transition from {current_status} to {target_status}")


class UserNotFound(NotFoundError):
    def __init__(self, user_id=None):
        detail = f"User not found: {user_id}" if user_id is not None else "User not found"
        super().__init__(detail)


class InsufficientCredits(HTTPException):
    def __init__(self, credit_type: str, required: int):
        self.credit_type = credit_type
        self.required = required
        label = "credit(s)" if credit_type == "general" else f"{credit_type} credit(s)"
        super().__init__(
            status_code=403,
            detail=f"Insufficient credits. You need {required} {label}. Please purchase a plan to get more credits.",
        )


class SubscriptionExpired(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=403, detail="Your subscription has expired. Please renew to continue."
        )
