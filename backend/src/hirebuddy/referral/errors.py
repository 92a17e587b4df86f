"""Referral error taxonomy.

Every failure carries a ``kind`` so callers can tell the cases apart
without parsing messages.
"""


class ReferralError(Exception):
    """Base class for referral operation errors."""

    kind = "ReferralError"
    status_code = 400
    default_message = "Referral operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidFormat(ReferralError):
    kind = "InvalidFormat"
    status_code = 422
    default_message = "Invalid referral code format"


class InvalidOrInactiveCode(ReferralError):
    kind = "InvalidOrInactiveCode"
    status_code = 400
    default_message = "Invalid or inactive referral code"


class SelfReferralForbidden(ReferralError):
    kind = "SelfReferralForbidden"
    status_code = 400
    default_message = "You cannot use your own referral code"


class EmailAlreadyReferred(ReferralError):
    kind = "EmailAlreadyReferred"
    status_code = 409
    default_message = "This email has already been referred"


class ReferralNotFound(ReferralError):
    """Referral missing, or no longer pending."""

    kind = "NotFound"
    status_code = 404
    default_message = "Referral not found or already completed"


class ReferralExpired(ReferralError):
    kind = "Expired"
    status_code = 410
    default_message = "Referral has expired"


class Unauthenticated(ReferralError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class Forbidden(ReferralError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Not allowed to access this referral resource"


class StorageError(ReferralError):
    """Persistence failed; the transaction was rolled back."""

    kind = "StorageError"
    status_code = 500
    default_message = "Internal server error"
