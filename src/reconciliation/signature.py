import json
import time
from typing import Callable

from src.models.events import VerifiedEvent, parse_event_object
from src.reconciliation.errors import (
    InvalidPayload,
    InvalidSignature,
    VerificationError,
)
from src.utils.crypto import compute_signature, parse_signature_header, signatures_match

DEFAULT_TOLERANCE_SECONDS = 300


class SignatureVerifier:
    """Verifies ``Stripe-Signature`` headers and decodes the event envelope."""

    def __init__(
        self,
        secret: str,
        tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.secret = secret
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock

    def verify(self, payload: bytes, signature_header: str) -> VerifiedEvent:
        """Return the decoded event or raise an AuthenticityError subclass.

        Authenticity is established before the body is parsed, so a tampered
        body always reports InvalidSignature regardless of whether it is still
        valid JSON.
        """
        try:
            try:
                timestamp, signatures = parse_signature_header(signature_header or "")
            except ValueError as e:
                raise VerificationError(f"Malformed signature header: {e}") from e

            if abs(self._clock() - timestamp) > self.tolerance_seconds:
                raise InvalidSignature("Timestamp outside the tolerance zone")

            expected = compute_signature(payload, self.secret, timestamp)
            if not signatures_match(expected, signatures):
                raise InvalidSignature("No signatures found matching the expected signature for payload")

            return self._decode(payload)
        except (InvalidPayload, InvalidSignature, VerificationError):
            raise
        except Exception as e:
            raise VerificationError(f"Unknown error verifying Stripe webhook: {e}") from e

    @staticmethod
    def _decode(payload: bytes) -> VerifiedEvent:
        try:
            envelope = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidPayload(f"Payload is not JSON: {e}") from e

        if not isinstance(envelope, dict):
            raise InvalidPayload("Payload is not a JSON object")
        event_type = envelope.get("type")
        data = envelope.get("data")
        data_object = data.get("object") if isinstance(data, dict) else None
        if not isinstance(event_type, str) or not isinstance(data_object, dict):
            raise InvalidPayload("Payload is missing type or data.object")

        try:
            parsed = parse_event_object(data_object)
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidPayload(f"Malformed {data_object.get('object')} object: {e}") from e

        return VerifiedEvent(
            type=event_type,
            data_object=parsed,
            id=envelope.get("id"),
            created=envelope.get("created"),
            livemode=bool(envelope.get("livemode", False)),
        )
