from fastapi import HTTPException


class PromotionError(HTTPException):
    """Base error of the promotions API, rendered as {"error": detail}."""

    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: str = None, **extra):
        self.extra = extra
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class ValidationError(PromotionError):
    status_code = 400
    default_detail = "Invalid request data"


class Unauthorized(PromotionError):
    status_code = 401
    default_detail = "Authorization header missing or invalid format"


class Forbidden(PromotionError):
    status_code = 403
    default_detail = "Admin access required"


class NotFound(PromotionError):
    status_code = 404
    default_detail = "Promotion not found"


class Conflict(PromotionError):
    status_code = 409
    default_detail = "Promotion code already exists. Please use a unique code."


class StoreError(PromotionError):
    status_code = 500
    default_detail = "Data store error"


class GenerationFailed(PromotionError):
    """Raised when no unique code was found within the retry bound."""

    status_code = 500
    default_detail = "Could not generate a unique promotion code"
