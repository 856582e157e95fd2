from .ack import AckChannel, AckSignal, RecordingChannel
from .classifier import HANDLED_EVENT_TYPES, Classification, classify
from .engine import PaymentRequest, ReconciliationEngine, ReconciliationResult
from .errors import (
    AmountDataError, AuthenticityError, FetchFailure, InvalidPayload, InvalidRequest,
    InvalidSignature, MetadataMissing, ReconciliationError, VerificationError,
)
from .logger import ReconciliationLogger, RequestContext
from .outcome import IllegalTransition, OutcomeStateMachine, ProcessingState
from .signature import SignatureVerifier

__all__ = [
    "AckChannel", "AckSignal", "RecordingChannel",
    "HANDLED_EVENT_TYPES", "Classification", "classify",
    "PaymentRequest", "ReconciliationEngine", "ReconciliationResult",
    "AmountDataError", "AuthenticityError", "FetchFailure", "InvalidPayload",
    "InvalidRequest", "InvalidSignature", "MetadataMissing", "ReconciliationError",
    "VerificationError",
    "ReconciliationLogger", "RequestContext",
    "IllegalTransition", "OutcomeStateMachine", "ProcessingState",
    "SignatureVerifier",
]
