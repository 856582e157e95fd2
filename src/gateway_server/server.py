import json
import logging
import threading
import time
from collections import deque
from datetime import datetime, timezone
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from urllib.parse import parse_qs, urlsplit

from src.config import DEFAULT_REDIRECT_PATH, DEFAULT_WEBHOOK_PATH
from src.models.events import InboundEvent
from src.models.settlement import RetryDecision
from src.reconciliation.engine import PaymentRequest, ReconciliationEngine

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"
GENERIC_REDIRECT_ERROR = "could not verify payment"
DEFAULT_MAX_RESULTS = 1000


class HTTPAckChannel:
    """Writes the Ack/Retry response and flushes it before processing goes on."""

    def __init__(self, handler: BaseHTTPRequestHandler):
        self._handler = handler
        self.sent = False

    def __call__(self, decision: RetryDecision) -> None:
        self._handler._send_json(decision.status_code, {"status": decision.value})
        self._handler.wfile.flush()
        self.sent = True


class _GatewayHandler(BaseHTTPRequestHandler):
    """Routes provider webhooks and customer checkout redirects to the engine."""

    def do_POST(self):
        path = urlsplit(self.path).path
        if path == self.server.webhook_path:  # type: ignore[attr-defined]
            self._handle_webhook()
        elif path == self.server.redirect_path:  # type: ignore[attr-defined]
            form = parse_qs(self._read_body().decode("utf-8", "replace"))
            self._handle_redirect(form.get("session_id", [""])[0])
        else:
            self._send_json(404, {"error": "not found"})

    def do_GET(self):
        url = urlsplit(self.path)
        if url.path == self.server.redirect_path:  # type: ignore[attr-defined]
            query = parse_qs(url.query)
            self._handle_redirect(query.get("session_id", [""])[0])
        else:
            self._send_json(404, {"error": "not found"})

    def _handle_webhook(self):
        engine: ReconciliationEngine = self.server.engine  # type: ignore[attr-defined]
        body = self._read_body()
        inbound = None
        if body:
            inbound = InboundEvent(
                payload=body,
                signature_header=self.headers.get(SIGNATURE_HEADER, ""),
                received_at=datetime.now(timezone.utc),
            )

        channel = HTTPAckChannel(self)
        result = engine.process(PaymentRequest(inbound=inbound), channel)
        if not channel.sent:
            # The engine always decides; this only guards the socket.
            self._send_json(RetryDecision.RETRY.status_code, {"status": RetryDecision.RETRY.value})
        self.server.record_result(result)  # type: ignore[attr-defined]

    def _handle_redirect(self, session_id: str):
        engine: ReconciliationEngine = self.server.engine  # type: ignore[attr-defined]
        result = engine.process(PaymentRequest(session_id=session_id or None))
        self.server.record_result(result)  # type: ignore[attr-defined]

        if result.is_paid:
            self._send_json(200, {
                "status": "verified",
                "outcome": result.outcome.kind.value,
                "transaction_id": result.transaction_id,
            })
        else:
            self._send_json(400, {"error": GENERIC_REDIRECT_ERROR})

    def _read_body(self) -> bytes:
        content_length = int(self.headers.get("Content-Length", 0) or 0)
        if content_length <= 0:
            return b""
        return self.rfile.read(content_length)

    def _send_json(self, code: int, body: dict) -> None:
        data = json.dumps(body).encode()
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        logger.debug("%s - " + format, self.address_string(), *args)


class _GatewayHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address,
        engine: ReconciliationEngine,
        webhook_path: str,
        redirect_path: str,
        max_results: int,
    ):
        super().__init__(address, _GatewayHandler)
        self.engine = engine
        self.webhook_path = webhook_path
        self.redirect_path = redirect_path
        # Most recent results only; older ones are dropped.
        self.results: deque = deque(maxlen=max_results)
        self.processed_count = 0
        self.results_lock = threading.Lock()

    def record_result(self, result) -> None:
        with self.results_lock:
            self.results.append(result)
            self.processed_count += 1


class PaymentGatewayServer:
    """HTTP front end for the reconciliation engine.

    ``POST {webhook_path}`` takes Stripe webhooks; ``GET|POST {redirect_path}``
    takes the ``session_id`` Checkout appends to the success URL.
    """

    def __init__(
        self,
        engine: ReconciliationEngine,
        host: str = "127.0.0.1",
        port: int = 0,
        webhook_path: str = DEFAULT_WEBHOOK_PATH,
        redirect_path: str = DEFAULT_REDIRECT_PATH,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self.engine = engine
        self._max_results = max_results
        self._host = host
        self._port = port
        self._webhook_path = webhook_path
        self._redirect_path = redirect_path
        self._server: _GatewayHTTPServer | None = None
        self._thread: threading.Thread | None = None

    def _bind(self) -> None:
        self._server = _GatewayHTTPServer(
            (self._host, self._port),
            self.engine,
            self._webhook_path,
            self._redirect_path,
            self._max_results,
        )
        # Get the actual port (useful when port=0)
        self._port = self._server.server_address[1]
        logger.info("payment gateway listening on %s", self.url, extra={"component": "server"})

    def start(self) -> None:
        self._bind()
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

    def serve_forever(self) -> None:
        self._bind()
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()
            self._server = None

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def url(self) -> str:
        return f"http://{self._host}:{self._port}{self._webhook_path}"

    @property
    def redirect_url(self) -> str:
        return f"http://{self._host}:{self._port}{self._redirect_path}"

    @property
    def port(self) -> int:
        return self._port

    def get_results(self) -> list:
        """The most recent results, oldest first (at most ``max_results``)."""
        if self._server is None:
            return []
        with self._server.results_lock:
            return list(self._server.results)

    @property
    def processed_count(self) -> int:
        if self._server is None:
            return 0
        with self._server.results_lock:
            return self._server.processed_count

    def wait_for_results(self, count: int, timeout: float = 5.0) -> list:
        """Block until ``count`` requests have finished processing.

        Webhook responses are flushed before processing ends, so a client can
        see its 200 before the result is recorded.
        """
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.processed_count >= count:
                return self.get_results()
            time.sleep(0.01)
        return self.get_results()
