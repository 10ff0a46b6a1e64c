"""Fakes and constants shared by unit and integration tests."""

from datetime import timedelta

import bcrypt

from core.clock import utcnow
from core.exceptions import ErrorKind, ExternalServiceError, UnauthorizedError
from utils.gateways import MailGateway, MirrorGateway
from utils.token_service import FederatedTokenRejected, FederatedTokenVerifier

PASSWORD = "correct-password"
# Low cost factor keeps fixtures fast; verification works for any cost
PASSWORD_HASH = bcrypt.hashpw(PASSWORD.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode("utf-8")

ANSWER_TEXT = (
    "Use a conditional UPDATE so that only one writer can flip the flag; "
    "check the affected row count to learn whether you won."
)
EDITED_TEXT = (
    "Wrap the read and the write in one transaction and retry on conflict; "
    "the version column tells you when somebody else got there first."
)


class FakeClock:
    """Controllable naive-UTC clock.

    Starts at the real current time because token expiry is checked by the
    JWT library against the wall clock.
    """

    def __init__(self, start=None):
        self.now = start or utcnow().replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


class RecordingMirror(MirrorGateway):
    """Mirror gateway that records calls and can be told to fail."""

    def __init__(self):
        self.calls = []
        self.failing = set()

    def _record(self, operation, content_id):
        self.calls.append((operation, content_id))
        if operation in self.failing:
            raise ExternalServiceError(ErrorKind.MIRROR_FAILED, f"{operation} timed out")

    def publish(self, content_id, payload):
        self._record("publish", content_id)
        return [{"channel": "telegram", "post_id": f"tg-{content_id}"}]

    def republish(self, content_id, payload, posts):
        self._record("republish", content_id)
        return [{"channel": "telegram", "post_id": f"tg-{content_id}-v2"}]

    def retract(self, content_id, posts):
        self._record("retract", content_id)

    def operations(self):
        return [operation for operation, _ in self.calls]


class RecordingMail(MailGateway):
    """Mail gateway that keeps sent messages in memory."""

    def __init__(self):
        self.sent = []
        self.failing = False

    def send(self, destination, template_kind, payload):
        if self.failing:
            raise ExternalServiceError(ErrorKind.MAIL_FAILED, "relay unavailable")
        self.sent.append((destination, template_kind, payload))

    def last_code(self, destination, template_kind=None):
        for sent_to, kind, payload in reversed(self.sent):
            if sent_to == destination and (template_kind is None or kind == template_kind):
                return payload["code"]
        return None


class StubFederatedVerifier(FederatedTokenVerifier):
    """Stand-in identity provider keyed by literal token strings."""

    def __init__(self):
        self.tokens = {}
        self.untrusted = set()

    def verify(self, token):
        if token in self.untrusted:
            raise UnauthorizedError(ErrorKind.INVALID_ISSUER, "Token issuer is not trusted")
        if token not in self.tokens:
            raise FederatedTokenRejected("Not a provider token")
        return self.tokens[token]
