"""Outbound gateway adapters.

The trust core talks to two external collaborators: a mirror publisher that
copies approved answers to external channels, and a mail relay that delivers
verification codes. Both are best-effort from the core's point of view: every
transport failure, timeout included, is raised as ExternalServiceError and the
caller decides how to log it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from config import (
    MAIL_API_TOKEN,
    MAIL_RELAY_URL,
    MAIL_TIMEOUT_SECONDS,
    MIRROR_API_TOKEN,
    MIRROR_PUBLISH_URL,
    MIRROR_TIMEOUT_SECONDS,
)
from core.exceptions import ErrorKind, ExternalServiceError

logger = logging.getLogger(__name__)


def _auth_headers(token: Optional[str]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


class MirrorGateway(ABC):
    """Publishes, republishes and retracts external copies of content."""

    @abstractmethod
    def publish(self, content_id: str, payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Publish content. Returns references to the created external posts."""

    @abstractmethod
    def republish(
        self,
        content_id: str,
        payload: Dict[str, Any],
        posts: List[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        """Replace existing external posts with new content."""

    @abstractmethod
    def retract(self, content_id: str, posts: List[Dict[str, Any]]) -> None:
        """Remove external posts."""


class NullMirrorGateway(MirrorGateway):
    """Used when no mirror publisher is configured."""

    def publish(self, content_id, payload):
        logger.debug("Mirror disabled, not publishing %s", content_id)
        return []

    def republish(self, content_id, payload, posts):
        logger.debug("Mirror disabled, not republishing %s", content_id)
        return list(posts)

    def retract(self, content_id, posts):
        logger.debug("Mirror disabled, not retracting %s", content_id)


class HttpMirrorGateway(MirrorGateway):
    """Mirror publisher reached over HTTP with a bounded timeout."""

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = MIRROR_API_TOKEN,
        timeout: float = MIRROR_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        """Initialize HttpMirrorGateway.

        Args:
            base_url: Root URL of the publisher service.
            api_token: Optional bearer token.
            timeout: Seconds before a call is abandoned and treated as failed.
            session: Optional requests.Session, mainly for tests.
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        operation: str,
        content_id: str,
        body: Dict[str, Any],
    ) -> requests.Response:
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                headers=_auth_headers(self.api_token),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            raise ExternalServiceError(
                ErrorKind.MIRROR_FAILED,
                f"Mirror {operation} for {content_id} timed out after {self.timeout}s",
            ) from exc
        except requests.RequestException as exc:
            raise ExternalServiceError(
                ErrorKind.MIRROR_FAILED,
                f"Mirror {operation} for {content_id} failed: {exc}",
            ) from exc
        return response

    @staticmethod
    def _posts_from(response: requests.Response, content_id: str) -> List[Dict[str, Any]]:
        try:
            data = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                ErrorKind.MIRROR_FAILED,
                f"Mirror returned a non-JSON body for {content_id}",
            ) from exc
        posts = data.get("posts", []) if isinstance(data, dict) else None
        if not isinstance(posts, list) or not all(isinstance(p, dict) for p in posts):
            raise ExternalServiceError(
                ErrorKind.MIRROR_FAILED,
                f"Mirror returned an unexpected body for {content_id}",
            )
        return list(posts)

    def publish(self, content_id, payload):
        response = self._request(
            "POST", "/posts", "publish", content_id, {"content_id": content_id, **payload}
        )
        return self._posts_from(response, content_id)

    def republish(self, content_id, payload, posts):
        response = self._request(
            "PUT",
            f"/posts/{content_id}",
            "republish",
            content_id,
            {"content_id": content_id, "posts": posts, **payload},
        )
        return self._posts_from(response, content_id)

    def retract(self, content_id, posts):
        self._request(
            "DELETE",
            f"/posts/{content_id}",
            "retract",
            content_id,
            {"content_id": content_id, "posts": posts},
        )


class MailGateway(ABC):
    """Delivers templated messages."""

    @abstractmethod
    def send(self, destination: str, template_kind: str, payload: Dict[str, Any]) -> None:
        """Send a message built from template_kind and payload."""


class LoggingMailGateway(MailGateway):
    """Development mail gateway: writes the message to the log."""

    def send(self, destination, template_kind, payload):
        logger.info("Mail to %s [%s]: %s", destination, template_kind, payload)


class HttpMailGateway(MailGateway):
    """Mail relay reached over HTTP with a bounded timeout."""

    def __init__(
        self,
        relay_url: str,
        api_token: Optional[str] = MAIL_API_TOKEN,
        timeout: float = MAIL_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self.relay_url = relay_url
        self.api_token = api_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def send(self, destination, template_kind, payload):
        try:
            response = self.session.post(
                self.relay_url,
                json={"to": destination, "template": template_kind, "data": payload},
                headers=_auth_headers(self.api_token),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            raise ExternalServiceError(
                ErrorKind.MAIL_FAILED,
                f"Mail relay rejected {template_kind} for {destination}: {exc}",
            ) from exc


def build_mirror_gateway() -> MirrorGateway:
    if MIRROR_PUBLISH_URL:
        return HttpMirrorGateway(MIRROR_PUBLISH_URL)
    return NullMirrorGateway()


def build_mail_gateway() -> MailGateway:
    if MAIL_RELAY_URL:
        return HttpMailGateway(MAIL_RELAY_URL)
    return LoggingMailGateway()
