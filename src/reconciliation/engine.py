import logging
import time
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from src.config import Settings
from src.ledger.store import LedgerRecord, PaymentLedger
from src.models.events import InboundEvent
from src.models.settlement import (
    AmountInfo,
    OutcomeKind,
    PaymentMetadata,
    ReasonCode,
    RetryDecision,
    SettlementOutcome,
)
from src.provider.base import ProviderGateway
from src.reconciliation.ack import AckChannel, AckSignal, RecordingChannel
from src.reconciliation.amounts import AmountCalculator, amount_from_session, remote_subscription_id
from src.reconciliation.classifier import Classification, classify
from src.reconciliation.errors import (
    AuthenticityError,
    FetchFailure,
    InvalidRequest,
    MetadataMissing,
    ReconciliationError,
)
from src.reconciliation.logger import ReconciliationLogger, RequestContext
from src.reconciliation.metadata import MetadataResolver
from src.reconciliation.outcome import OutcomeStateMachine, ProcessingState
from src.reconciliation.signature import SignatureVerifier
from src.utils.currency import CurrencyRules, STRIPE_CURRENCY_RULES, from_minor_units


@dataclass(frozen=True)
class PaymentRequest:
    """What arrived: a webhook delivery, a checkout redirect, or (invalid) neither."""

    inbound: InboundEvent | None = None
    session_id: str | None = None


@dataclass
class ReconciliationResult:
    request_id: str
    decision: RetryDecision | None = None
    outcome: SettlementOutcome | None = None
    error: ReasonCode | None = None
    event_type: str | None = None
    transaction_id: str | None = None
    metadata: PaymentMetadata | None = None
    amount: AmountInfo | None = None
    paid_amount: Decimal | None = None
    currency: str | None = None
    record: LedgerRecord | None = None
    remote_subscription_id: str = ""
    state: ProcessingState = ProcessingState.UNVERIFIED
    duration_ms: float = 0.0

    @property
    def is_paid(self) -> bool:
        return self.outcome is not None and self.outcome.kind is OutcomeKind.PAID


class ReconciliationEngine:
    """Turns provider notifications into settlement outcomes.

    Webhook flow: verify -> classify -> resolve metadata -> compute amount ->
    settle, emitting exactly one Ack/Retry on the request's channel. Redirect
    flow: retrieve the checkout session and settle it synchronously.
    """

    def __init__(
        self,
        settings: Settings,
        gateway: ProviderGateway,
        ledger: PaymentLedger,
        logger: ReconciliationLogger | None = None,
        metrics=None,
        currency_rules: CurrencyRules = STRIPE_CURRENCY_RULES,
        clock: Callable[[], float] = time.time,
        alert=None,
    ):
        self.settings = settings
        self.gateway = gateway
        self.ledger = ledger
        self.logger = logger or ReconciliationLogger()
        self.metrics = metrics
        # Checked after every Ack/Retry; usually a RetryRateAlert over ``metrics``.
        self.alert = alert
        self.currency_rules = currency_rules
        self.verifier = SignatureVerifier(
            settings.webhook_secret,
            tolerance_seconds=settings.signature_tolerance,
            clock=clock,
        )
        self.resolver = MetadataResolver(gateway)
        self.calculator = AmountCalculator(gateway)

    def process(self, request: PaymentRequest, channel: AckChannel | None = None) -> ReconciliationResult:
        """Dispatch a request to the webhook or redirect flow."""
        if channel is None:
            channel = RecordingChannel()
        try:
            if request.inbound is not None:
                return self.handle_webhook(request.inbound, channel)
            if request.session_id:
                return self.handle_redirect(request.session_id)
            raise InvalidRequest()
        except InvalidRequest as e:
            context = self._context()
            context.log("engine", "process", str(e), level=logging.WARNING)
            signal = AckSignal(channel, context, self.metrics)
            signal.retry(e.reason)
            self._check_alert()
            return ReconciliationResult(
                request_id=context.request_id, decision=signal.decision, error=e.reason
            )

    def handle_webhook(self, inbound: InboundEvent, channel: AckChannel) -> ReconciliationResult:
        started = time.monotonic()
        context = self._context()
        signal = AckSignal(channel, context, self.metrics)
        machine = OutcomeStateMachine(self.currency_rules)
        result = ReconciliationResult(request_id=context.request_id)

        try:
            self._run_webhook(inbound, signal, machine, context, result)
        except AuthenticityError as e:
            context.log("signature", "verify", str(e), level=logging.WARNING, reason=e.reason.value)
            signal.retry(e.reason)
            result.error = e.reason
        except FetchFailure as e:
            # Retry already sent by the resolver; nothing is settled.
            result.error = e.reason
        except ReconciliationError as e:
            context.log("engine", "reconcile", str(e), level=logging.WARNING, reason=e.reason.value)
            signal.ack(e.reason)
            result.error = e.reason
            result.outcome = SettlementOutcome.rejected(e.reason)
            self._finish(machine)
        except Exception:
            context.log(
                "engine", "reconcile", "unexpected error while reconciling webhook",
                level=logging.ERROR, exc_info=True,
            )
            signal.ack(ReasonCode.INTERNAL_ERROR)
            result.error = ReasonCode.INTERNAL_ERROR
        finally:
            if not signal.emitted:
                signal.ack()
            result.decision = signal.decision
            result.state = machine.state
            result.duration_ms = (time.monotonic() - started) * 1000

        self._log_result(context, result)
        self._check_alert()
        return result

    def _run_webhook(
        self,
        inbound: InboundEvent,
        signal: AckSignal,
        machine: OutcomeStateMachine,
        context: RequestContext,
        result: ReconciliationResult,
    ) -> None:
        if self.settings.debug_payments:
            context.log(
                "engine", "receive", "raw webhook payload",
                level=logging.DEBUG, payload=inbound.payload.decode("utf-8", "replace"),
            )

        event = self.verifier.verify(inbound.payload, inbound.signature_header)
        machine.advance(ProcessingState.VERIFIED)
        result.event_type = event.type
        result.transaction_id = event.transaction_id
        context.log("signature", "verify", f"verified {event.type}", event_id=event.id)

        if classify(event) is Classification.LOG_ONLY:
            context.log("classifier", "classify", f"ignoring unhandled event type {event.type}")
            signal.ack(ReasonCode.UNHANDLED_EVENT)
            result.outcome = SettlementOutcome.unhandled()
            machine.advance(ProcessingState.OUTCOME)
            return
        machine.advance(ProcessingState.CLASSIFIED)

        resolution = self.resolver.resolve(event, signal, context)
        machine.advance(ProcessingState.METADATA_RESOLVED)
        result.metadata = resolution.metadata

        amount = self.calculator.compute(event, resolution.invoice, context)
        machine.advance(ProcessingState.AMOUNT_COMPUTED)
        self._record_amount(result, amount)
        result.remote_subscription_id = remote_subscription_id(resolution.invoice)

        result.outcome, result.record = machine.settle(
            event.type, amount, resolution.metadata, self.ledger
        )
        if result.outcome.kind is OutcomeKind.REJECTED:
            result.error = result.outcome.reason
            context.log(
                "engine", "settle",
                f"{event.type} rejected: {result.outcome.reason.value}",
                level=logging.WARNING,
                reason=result.outcome.reason.value,
                paid_amount=str(result.paid_amount),
                currency=result.currency,
            )

    def handle_redirect(self, session_id: str) -> ReconciliationResult:
        """Verify a checkout session the customer was redirected back with.

        Failures are reported on the result only; callers show a generic
        message to the customer.
        """
        started = time.monotonic()
        context = self._context()
        machine = OutcomeStateMachine(self.currency_rules)
        result = ReconciliationResult(request_id=context.request_id, event_type="checkout.redirect")

        try:
            fetched = self.gateway.retrieve_checkout_session(session_id)
            if fetched.failed or fetched.value is None:
                context.log(
                    "engine", "redirect",
                    f"could not retrieve checkout session {session_id}: {fetched.error or 'not found'}",
                    level=logging.WARNING,
                )
                raise ReconciliationError(ReasonCode.INVALID_SESSION)
            session = fetched.value
            machine.advance(ProcessingState.VERIFIED)
            machine.advance(ProcessingState.CLASSIFIED)
            result.transaction_id = session.payment_intent

            if not PaymentMetadata.has_hash(session.metadata):
                raise MetadataMissing("Metadata missing from Stripe checkout session.")
            metadata = PaymentMetadata.from_mapping(session.metadata)
            context.correlate(metadata.hash)
            machine.advance(ProcessingState.METADATA_RESOLVED)
            result.metadata = metadata

            amount = amount_from_session(session)
            machine.advance(ProcessingState.AMOUNT_COMPUTED)
            self._record_amount(result, amount)

            result.outcome, result.record = machine.settle_session(
                session.payment_status, amount, metadata, self.ledger
            )
            if not result.is_paid:
                result.error = result.outcome.reason
        except ReconciliationError as e:
            context.log("engine", "redirect", str(e), level=logging.WARNING, reason=e.reason.value)
            result.error = e.reason
            result.outcome = SettlementOutcome.rejected(e.reason)
            self._finish(machine)
        except Exception:
            context.log(
                "engine", "redirect", "unexpected error while verifying checkout session",
                level=logging.ERROR, exc_info=True,
            )
            result.error = ReasonCode.INTERNAL_ERROR
        finally:
            result.state = machine.state
            result.duration_ms = (time.monotonic() - started) * 1000

        self._log_result(context, result)
        return result

    def _check_alert(self) -> None:
        if self.alert is not None:
            self.alert.check()

    def _context(self) -> RequestContext:
        return RequestContext(self.logger, f"req_{uuid.uuid4().hex[:16]}")

    def _record_amount(self, result: ReconciliationResult, amount: AmountInfo) -> None:
        result.amount = amount
        result.currency = amount.currency
        result.paid_amount = from_minor_units(amount.amount_minor_units, amount.currency, self.currency_rules)

    @staticmethod
    def _finish(machine: OutcomeStateMachine) -> None:
        if not machine.terminal:
            machine.advance(ProcessingState.OUTCOME)

    @staticmethod
    def _log_result(context: RequestContext, result: ReconciliationResult) -> None:
        outcome = result.outcome.kind.value if result.outcome else None
        level = logging.INFO if result.error is None else logging.WARNING
        context.log(
            "engine", "result",
            f"{result.event_type}: outcome={outcome} decision="
            f"{result.decision.value if result.decision else None}",
            level=level,
            transaction_id=result.transaction_id,
            error=result.error.value if result.error else None,
            duration_ms=round(result.duration_ms, 2),
        )
