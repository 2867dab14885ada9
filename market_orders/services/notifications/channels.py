"""
Market Orders — Notification transports

Each channel wraps one external gateway behind `send(recipients, message)`.
All of them share an httpx.AsyncClient owned by whoever runs the dispatch, so
tests can swap the transport and no client outlives its run.

A channel returns a DeliveryResult describing each recipient. It raises
ChannelFailure only when the gateway could not be used at all.
"""
import asyncio
from dataclasses import dataclass, field

import httpx

from market_orders.core.errors import ChannelFailure


@dataclass(frozen=True)
class Message:
    subject: str
    body: str
    html: str | None = None
    data: dict = field(default_factory=dict)


@dataclass
class DeliveryResult:
    delivered: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    # Push tokens the gateway reports as no longer registered
    stale: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.delivered)


class NotificationChannel:
    name = "channel"

    @property
    def configured(self) -> bool:
        return True

    async def send(self, recipients: list[str], message: Message) -> DeliveryResult:
        raise NotImplementedError


class ResendEmailChannel(NotificationChannel):
    """Transactional email over the Resend HTTP API. One call for all recipients."""

    name = "email"

    def __init__(self, client: httpx.AsyncClient, api_key: str, api_url: str, sender: str):
        self._client = client
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def send(self, recipients: list[str], message: Message) -> DeliveryResult:
        payload = {
            "from": self._sender,
            "to": recipients,
            "subject": message.subject,
            "text": message.body,
        }
        if message.html:
            payload["html"] = message.html
        try:
            response = await self._client.post(
                self._api_url,
                json=payload,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            raise ChannelFailure(self.name, f"request failed: {exc}") from exc

        if not response.is_success:
            raise ChannelFailure(self.name, f"gateway returned {response.status_code}: {response.text[:200]}")

        return DeliveryResult(delivered=list(recipients))


class TextBeeSmsChannel(NotificationChannel):
    """SMS through a TextBee device gateway. Sends one request per recipient
    so a bad number does not hide the outcome of the others."""

    name = "sms"

    def __init__(self, client: httpx.AsyncClient, api_key: str, device_id: str, base_url: str):
        self._client = client
        self._api_key = api_key
        self._device_id = device_id
        self._base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._device_id)

    async def _send_one(self, recipient: str, text: str) -> None:
        response = await self._client.post(
            f"{self._base_url}/gateway/devices/{self._device_id}/send-sms",
            json={"recipients": [recipient], "message": text},
            headers={"x-api-key": self._api_key},
        )
        response.raise_for_status()

    async def send(self, recipients: list[str], message: Message) -> DeliveryResult:
        outcomes = await asyncio.gather(
            *(self._send_one(r, message.body) for r in recipients),
            return_exceptions=True,
        )
        result = DeliveryResult()
        for recipient, outcome in zip(recipients, outcomes):
            if isinstance(outcome, BaseException):
                result.failed[recipient] = str(outcome) or type(outcome).__name__
            else:
                result.delivered.append(recipient)
        return result


class ExpoPushChannel(NotificationChannel):
    """Push notifications to the admin app through the Expo push service."""

    name = "push"

    def __init__(self, client: httpx.AsyncClient, push_url: str, access_token: str = ""):
        self._client = client
        self._push_url = push_url
        self._access_token = access_token

    async def send(self, recipients: list[str], message: Message) -> DeliveryResult:
        payload = [
            {
                "to": token,
                "title": message.subject,
                "body": message.body,
                "data": message.data,
                "sound": "default",
                "priority": "high",
                "channelId": "default",
            }
            for token in recipients
        ]
        headers = {"Accept": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        try:
            response = await self._client.post(self._push_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise ChannelFailure(self.name, f"request failed: {exc}") from exc

        if not response.is_success:
            raise ChannelFailure(self.name, f"gateway returned {response.status_code}: {response.text[:200]}")

        tickets = response.json().get("data", [])
        result = DeliveryResult()
        for token, ticket in zip(recipients, tickets):
            if ticket.get("status") == "ok":
                result.delivered.append(token)
                continue
            result.failed[token] = ticket.get("message", "unknown error")
            if (ticket.get("details") or {}).get("error") == "DeviceNotRegistered":
                result.stale.append(token)
        for token in recipients[len(tickets):]:
            result.failed[token] = "no ticket returned"
        return result
