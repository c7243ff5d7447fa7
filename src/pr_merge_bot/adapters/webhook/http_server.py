from __future__ import annotations
"""HTTP transport for GitHub webhook deliveries.

Deliveries are acknowledged as soon as they are authenticated and parsed;
handling runs on the supplied executor so a long merge never holds the HTTP
response open.
"""

from concurrent.futures import Executor
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
import json
import logging

from pr_merge_bot.adapters.webhook.dispatcher import WebhookDispatcher
from pr_merge_bot.adapters.webhook.github_events import verify_signature


LOGGER = logging.getLogger(__name__)

MAX_BODY_BYTES = 25 * 1024 * 1024


class WebhookHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(
        self,
        address: tuple[str, int],
        *,
        dispatcher: WebhookDispatcher,
        executor: Executor,
        secret: str | None = None,
    ) -> None:
        super().__init__(address, WebhookRequestHandler)
        self.dispatcher = dispatcher
        self.executor = executor
        self.secret = secret


class WebhookRequestHandler(BaseHTTPRequestHandler):
    server: WebhookHTTPServer

    def do_POST(self) -> None:  # noqa: N802
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0 or length > MAX_BODY_BYTES:
            self._respond(400, "invalid content length")
            return

        body = self.rfile.read(length)
        if not verify_signature(self.server.secret, body, self.headers.get("X-Hub-Signature-256")):
            LOGGER.warning(
                "webhook signature mismatch",
                extra={"event": "webhook.unauthorized", "client": self.client_address[0]},
            )
            self._respond(401, "bad signature")
            return

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            self._respond(400, "invalid json")
            return
        if not isinstance(payload, dict):
            self._respond(400, "invalid json")
            return

        event_name = self.headers.get("X-GitHub-Event", "")
        LOGGER.info(
            "webhook received",
            extra={
                "event": "webhook.received",
                "github_event": event_name,
                "delivery": self.headers.get("X-GitHub-Delivery", ""),
            },
        )
        self.server.executor.submit(self.server.dispatcher.dispatch_safely, event_name, payload)
        self._respond(202, "accepted")

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        LOGGER.debug(format % args, extra={"event": "http.access", "client": self.client_address[0]})

    def _respond(self, status: int, text: str) -> None:
        encoded = f"{text}\n".encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(encoded)))
        self.end_headers()
        self.wfile.write(encoded)
