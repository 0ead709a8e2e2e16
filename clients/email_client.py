"""
Email gateway client for login and invitation emails.

Uses HMAC-SHA256 signature for request authentication. The gateway renders
the message; this client only signs and posts the payload.
"""

import hashlib
import hmac
import json
import logging

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Raised when email gateway request fails."""


class EmailGatewayClient:
    """Send emails via HTTP gateway with HMAC signature verification."""

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: float = 10):
        """
        Initialize with gateway credentials.

        Raises:
            ValueError: If any credential is empty
        """
        if not gateway_url:
            raise ValueError("gateway_url is required")
        if not api_key:
            raise ValueError("api_key is required")
        if not hmac_secret:
            raise ValueError("hmac_secret is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self.hmac_secret = hmac_secret
        self.timeout = timeout

    def sign(self, payload_json: str) -> str:
        """Hex HMAC-SHA256 of the exact JSON body sent."""
        return hmac.new(
            self.hmac_secret.encode("utf-8"),
            payload_json.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def _sign_and_send(self, payload: dict) -> None:
        """
        Sign payload with HMAC and send to gateway.

        Raises:
            EmailGatewayError: On any failure
        """
        payload_json = json.dumps(payload, separators=(",", ":"))

        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self.sign(payload_json),
        }

        try:
            response = requests.post(
                self.gateway_url,
                data=payload_json,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}")

        try:
            response_data = response.json()
        except ValueError:
            logger.error(f"Email gateway returned invalid JSON: {response.text}")
            raise EmailGatewayError("Invalid response from gateway")

        if response.status_code != 200 or not response_data.get("success"):
            error_msg = response_data.get("message", "Unknown error")
            logger.error(f"Email gateway error: {error_msg}")
            raise EmailGatewayError(f"Gateway error: {error_msg}")

    def send_magic_link(self, email: str, token: str, app_url: str, tenant_name: str) -> None:
        """
        Send a sign-in link.

        Raises:
            EmailGatewayError: On any failure
        """
        payload = {
            "type": "magic_link",
            "email": email,
            "token": token,
            "app_url": app_url,
            "business": tenant_name,
        }
        self._sign_and_send(payload)
        logger.info(f"Magic link email sent to {email}")

    def send_staff_invite(
        self,
        email: str,
        token: str,
        app_url: str,
        tenant_name: str,
        staff_name: str,
    ) -> None:
        """
        Send a team invitation carrying a sign-in link.

        The link is a regular magic link; the gateway uses the invite
        template so the recipient sees who invited them and to where.

        Raises:
            EmailGatewayError: On any failure
        """
        payload = {
            "type": "staff_invite",
            "email": email,
            "token": token,
            "app_url": app_url,
            "business": tenant_name,
            "name": staff_name,
        }
        self._sign_and_send(payload)
        logger.info(f"Staff invite email sent to {email}")
