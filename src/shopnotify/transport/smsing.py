"""SMSing provider client (SMS, WhatsApp Business and WhatsApp Cloud)."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from shopnotify.core.config import SMSingConfig
from shopnotify.transport.base import TransportResult

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")
_ACCEPTED_STATUSES = {"queued", "success"}

# Any phone that reaches the provider yields a structured reply, even a
# rejection, which is all the health check needs.
_HEALTH_CHECK_PHONE = "2250000000000"


class SMSingClient:
    """Talks to the SMSing HTTP API.

    Every call is a GET against the single ``smsAPI`` endpoint with the
    action and credentials in the query string. SMS and WhatsApp Business
    share one key pair; WhatsApp Cloud templates use a second pair.
    """

    def __init__(self, config: SMSingConfig | None = None) -> None:
        self.config = config or SMSingConfig()
        self._http = httpx.AsyncClient(timeout=httpx.Timeout(self.config.timeout_seconds))

    # -- public API ----------------------------------------------------------

    def format_phone(self, phone: str) -> str:
        """Digits only, with the country code prefixed when it is missing."""
        cleaned = _NON_DIGITS.sub("", phone)
        if cleaned.startswith(self.config.country_code):
            return cleaned
        return f"{self.config.country_code}{cleaned}"

    async def send_sms(self, to: str, message: str) -> TransportResult:
        params = self._send_params("sms", to, message)
        return await self._send(params, label="SMS")

    async def send_whatsapp_business(
        self, to: str, message: str, media_url: str | None = None
    ) -> TransportResult:
        """Send a free-form WhatsApp message; the store logo rides along by default."""
        params = self._send_params("whatsapp", to, message)
        params["file"] = media_url or self.config.logo_url
        return await self._send(params, label="WhatsApp Business", lenient=True)

    async def send_whatsapp_cloud_otp(
        self, to: str, otp_code: str, language: str | None = None
    ) -> TransportResult:
        """Send an OTP through an approved WhatsApp Cloud template."""
        language = language or self.config.otp_language
        if self.config.use_custom_otp_template:
            text = (
                f"content:{self.config.custom_otp_template}|lang={language}"
                f"|body={otp_code}|header=image:{self.config.logo_url}"
            )
        else:
            text = (
                f"content:official_otp_code_template|lang={language}"
                f"|body={otp_code}|button={otp_code}"
            )
        params = self._send_params(
            "whatsapp",
            to,
            text,
            api_key=self.config.cloud_api_key,
            api_token=self.config.cloud_api_token,
        )
        return await self._send(params, label="WhatsApp Cloud")

    async def check_message_status(self, group_id: str) -> dict[str, Any]:
        """Look up delivery status for a previously returned group id."""
        params = {
            "groupstatus": "",
            "apikey": self.config.api_key,
            "apitoken": self.config.api_token,
            "groupid": group_id,
        }
        try:
            resp = await self._http.get(self.config.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("SMSing status check for %s failed: %s", group_id, exc)
            return {"success": False, "error": str(exc)}

        if data.get("status") == "success":
            return {
                "success": True,
                "status": data.get("group_status"),
                "recipients": data.get("recipients", []),
            }
        return {"success": False, "error": data.get("message") or "Failed to check message status"}

    async def is_healthy(self) -> bool:
        """True when the provider answers at all, even with a rejection."""
        params = self._send_params("sms", _HEALTH_CHECK_PHONE, "Health check")
        try:
            resp = await self._http.get(self.config.base_url, params=params)
            resp.raise_for_status()
            resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("SMSing health check failed: %s", exc)
            return False
        return True

    async def close(self) -> None:
        await self._http.aclose()

    # -- internals -----------------------------------------------------------

    def _send_params(
        self,
        kind: str,
        to: str,
        text: str,
        *,
        api_key: str | None = None,
        api_token: str | None = None,
    ) -> dict[str, str]:
        return {
            "sendsms": "",
            "apikey": self.config.api_key if api_key is None else api_key,
            "apitoken": self.config.api_token if api_token is None else api_token,
            "type": kind,
            "from": self.config.sender_id,
            "to": self.format_phone(to),
            "text": text,
        }

    async def _send(
        self, params: dict[str, str], *, label: str, lenient: bool = False
    ) -> TransportResult:
        try:
            resp = await self._http.get(self.config.base_url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as exc:
            logger.warning("SMSing %s request to %s failed: %s", label, params["to"], exc)
            return TransportResult(success=False, error=f"HTTP error: {exc}")
        except ValueError:
            logger.warning("SMSing %s returned a non-JSON body", label)
            return TransportResult(success=False, error="Invalid provider response")

        return self._parse_send_response(data, label=label, lenient=lenient)

    @staticmethod
    def _parse_send_response(
        data: dict[str, Any], *, label: str, lenient: bool = False
    ) -> TransportResult:
        """Interpret a send reply.

        WhatsApp Business replies are not consistent, so *lenient* also
        accepts ``success: true`` and a ``code`` of 0 or 200.
        """
        accepted = data.get("status") in _ACCEPTED_STATUSES
        if lenient and not accepted:
            accepted = data.get("success") is True or data.get("code") in (0, 200)

        if accepted:
            group_id = data.get("group_id")
            message_id = group_id or data.get("id") or data.get("message_id")
            return TransportResult(
                success=True,
                message_id=str(message_id) if message_id is not None else None,
                group_id=str(group_id) if group_id is not None else None,
            )

        error = data.get("message") or data.get("error") or data.get("status")
        logger.warning("SMSing %s rejected: %s", label, error)
        return TransportResult(success=False, error=error or f"Failed to send {label} message")
