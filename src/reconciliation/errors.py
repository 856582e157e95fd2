from src.models.settlement import ReasonCode


class ReconciliationError(Exception):
    """Base for failures that abort processing of a single request.

    ``retryable`` decides the acknowledgement: True asks the provider to
    redeliver, False accepts the event so it is not sent again.
    """

    retryable = False

    def __init__(self, reason: ReasonCode, message: str = ""):
        super().__init__(message or reason.value)
        self.reason = reason


class InvalidRequest(ReconciliationError):
    """Neither a webhook body nor a redirect session id was supplied."""

    def __init__(self, message: str = "Invalid Request."):
        super().__init__(ReasonCode.INVALID_REQUEST, message)


class AuthenticityError(ReconciliationError):
    retryable = True


class InvalidPayload(AuthenticityError):
    def __init__(self, message: str = "Invalid Stripe webhook payload."):
        super().__init__(ReasonCode.INVALID_PAYLOAD, message)


class InvalidSignature(AuthenticityError):
    def __init__(self, message: str = "Invalid Stripe webhook signature."):
        super().__init__(ReasonCode.INVALID_SIGNATURE, message)


class VerificationError(AuthenticityError):
    def __init__(self, message: str = "Unknown error verifying Stripe webhook."):
        super().__init__(ReasonCode.VERIFICATION_ERROR, message)


class FetchFailure(ReconciliationError):
    """A provider read failed; redelivery is expected to succeed."""

    retryable = True


class MetadataMissing(ReconciliationError):
    def __init__(self, message: str = "Metadata missing from Stripe charge & invoice."):
        super().__init__(ReasonCode.METADATA_MISSING, message)


class AmountDataError(ReconciliationError):
    def __init__(self, message: str = "Missing currency or amount data in the webhook event."):
        super().__init__(ReasonCode.MISSING_AMOUNT_DATA, message)
