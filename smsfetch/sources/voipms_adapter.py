import os
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from smsfetch.config.constants import REQUEST_TIMEOUT_SEC, VOIPMS_API_ORIGIN
from smsfetch.errors import RemoteServiceError, TransportError
from smsfetch.models import Message
from smsfetch.net import api_session
from smsfetch.utils import get_logger, redact_secrets

logger = get_logger(__name__)

# Status codes returned by the VoIP.ms REST API in place of "success"
STATUS_MESSAGES = {
    "api_not_enabled": "API has not been enabled or has been disabled",
    "ip_not_enabled": "This IP is not enabled for API use",
    "invalid_credentials": "Username or Password is incorrect",
    "missing_credentials": "Username or Password was not provided",
    "missing_method": "Method must be provided",
    "invalid_method": "This is not a valid Method",
    "missing_did": "DID was not provided",
    "invalid_did": "This is not a valid DID",
    "no_did": "There are no DIDs",
    "no_sms": "There are no SMS messages",
    "sms_failed": "The SMS message was not sent",
    "invalid_date": "This is not a valid date",
    "invalid_daterange": "Date range can not be greater than 92 days",
    "invalid_type": "This is not a valid Type",
    "invalid_limit": "This is not a valid Limit",
    "limit_reached": "You have reached the maximum number of messages allowed per day",
    "unavailable": "The service is unavailable at the moment",
}


def decode_status(status: Optional[str]) -> str:
    if not status:
        return "No status in response"
    return STATUS_MESSAGES.get(status, f'Unknown status "{status}"')


class VoIPmsClient:
    """Minimal client for the one REST method the fetcher uses."""

    def __init__(
        self,
        username: str,
        password: str,
        session: Optional[requests.Session] = None,
        origin: Optional[str] = None,
        timeout: float = REQUEST_TIMEOUT_SEC,
    ):
        self.username = username
        self.password = password
        self.session = session or api_session()
        self.origin = origin or os.getenv("VOIPMS_API_ORIGIN", VOIPMS_API_ORIGIN)
        self.timeout = timeout

    def _request(self, method: str, **params: Any) -> Dict[str, Any]:
        query = {
            "api_username": self.username,
            "api_password": self.password,
            "method": method,
            **params,
        }
        try:
            r = self.session.get(self.origin, params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise TransportError(f"VoIP.ms request failed: {redact_secrets(str(e), [self.password])}") from e

        if r.status_code != 200:
            logger.error("voipms %s failed status=%s body=%s", method, r.status_code, redact_secrets(r.text, [self.password]))
            raise TransportError(f"VoIP.ms request failed: HTTP {r.status_code}", field="status", value=r.status_code)
        try:
            data = r.json()
        except ValueError as e:
            raise TransportError("VoIP.ms returned a body that is not JSON") from e
        if not isinstance(data, dict):
            raise TransportError("VoIP.ms returned an unexpected JSON document")
        return data

    def get_sms(self, did: str) -> List[Message]:
        """Fetch every message on ``did`` in the order the API returns them."""
        data = self._request("getSMS", did=did)
        status = data.get("status")
        if status != "success":
            raise RemoteServiceError(status or "", decode_status(status))

        records = data.get("sms") or []
        messages: List[Message] = []
        for record in records:
            try:
                messages.append(Message.model_validate(record))
            except ValidationError as e:
                raise TransportError(f"VoIP.ms returned an unusable message record: {record!r}") from e

        logger.info("voipms getSMS did=%s fetched_items=%d", did, len(messages))
        return messages
