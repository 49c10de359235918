from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from chirp.lib.utils.retry import RetryPolicy, with_retry

from ..models import EmailMessage, Recipient
from .base import NotificationSink, SendError

RESEND_BASE_URL = "https://api.resend.com"
_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}

logger = logging.getLogger("chirp.notifications.resend")


class ResendSink(NotificationSink):
    """Deliver plain-text email through the Resend HTTP API."""

    name = "resend"

    def __init__(
        self,
        api_key: str,
        *,
        retry: RetryPolicy = RetryPolicy(),
        base_url: str = RESEND_BASE_URL,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Resend sink requires an api_key")
        self._retry = retry
        self._owns_client = client is None
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._headers = {"Authorization": f"Bearer {api_key}"}

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def send(self, recipient: Recipient, message: EmailMessage) -> str:
        payload = {
            "from": message.sender,
            "to": [recipient.email],
            "subject": message.subject,
            "text": message.text,
        }
        return with_retry(
            lambda: self._post(payload),
            policy=self._retry,
            exceptions=(SendError,),
            logger=logger,
            description=f"resend delivery to {recipient.email}",
        )

    def _post(self, payload: Dict[str, Any]) -> str:
        try:
            response = self._client.post("/emails", json=payload, headers=self._headers)
        except httpx.HTTPError as exc:
            raise SendError(f"Resend request failed: {exc}", retryable=True) from exc

        if response.status_code >= 400:
            raise SendError(
                f"Resend rejected message ({response.status_code}): {self._error_message(response)}",
                retryable=response.status_code in _RETRYABLE_STATUS,
            )
        try:
            body = response.json()
        except ValueError:
            body = {}
        return str(body.get("id") or "")

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return str(body.get("message") or body.get("name") or body)
        return str(body)
