"""
payment.py
PromptPay charge lifecycle: create a charge, poll it to a terminal status,
then commit the pending membership record exactly once.

Gateway clients are passed in, so the flow runs against fakes in tests.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable

import requests

from models import (
    CHARGE_SUCCESSFUL,
    Charge,
    MembershipRecord,
    amount_in_satang,
)

logger = logging.getLogger(__name__)

POLL_PROCESSING = "processing"
POLL_SUCCESS = "success"
POLL_FAILED = "failed"


class GatewayError(Exception):
    """Transport or HTTP failure talking to the payment gateway (or the proxy)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class PaymentCreationError(Exception):
    """Charge could not be created. The caller must resubmit explicitly."""

    def __init__(self, message: str = "payment creation failed"):
        super().__init__(message)


class _JsonHttpClient:
    def __init__(self, base_url: str, timeout: float = 15, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            raise GatewayError(f"{method} {path} failed: {exc}") from exc
        if resp.status_code >= 400:
            raise GatewayError(f"{method} {path} returned {resp.status_code}: {resp.text[:200]}", resp.status_code)
        try:
            payload = resp.json()
        except ValueError as exc:
            raise GatewayError(f"{method} {path} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise GatewayError(f"{method} {path} returned unexpected payload")
        return payload


class OmiseGateway(_JsonHttpClient):
    """Omise charges API, authenticated with the secret key as the basic-auth user."""

    def __init__(self, secret_key: str, base_url: str = "https://api.omise.co", timeout: float = 15,
                 session: requests.Session | None = None):
        super().__init__(base_url, timeout, session)
        self.session.auth = (secret_key, "")

    def create_charge(self, amount: int, currency: str, description: str, source: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "amount": amount,
            "currency": currency.lower(),
            "description": description,
            "source": source,
        }
        return self._request("POST", "/charges", json=payload)

    def retrieve_charge(self, charge_id: str) -> dict[str, Any]:
        return self._request("GET", f"/charges/{charge_id}")


class ProxyGateway(_JsonHttpClient):
    """Same interface as OmiseGateway, but through this project's /api proxy."""

    def create_charge(self, amount: int, currency: str, description: str, source: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "amount": amount,
            "currency": currency,
            "description": description,
            "source": source,
        }
        return self._request("POST", "/api/create-payment", json=payload)

    def retrieve_charge(self, charge_id: str) -> dict[str, Any]:
        return self._request("GET", f"/api/check-payment/{charge_id}")


def create_charge(gateway, amount: int, currency: str, description: str, source: dict[str, Any]) -> Charge:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise ValueError("amount must be a positive integer in minor units")
    if not isinstance(currency, str) or not currency.strip():
        raise ValueError("currency is required")

    try:
        payload = gateway.create_charge(amount=amount, currency=currency, description=description, source=source)
        charge = Charge.from_gateway(payload)
    except (GatewayError, TypeError, ValueError) as exc:
        logger.error("Charge creation failed: amount=%s currency=%s error=%s", amount, currency, exc)
        raise PaymentCreationError() from exc

    if not charge.id:
        logger.error("Gateway returned a charge without an id: %s", payload)
        raise PaymentCreationError()
    logger.info("Charge created: id=%s amount=%s status=%s", charge.id, charge.amount, charge.status)
    return charge


def membership_description(membership_type: str, party_name: str) -> str:
    tier = "Yearly" if membership_type == "yearly" else "Lifetime"
    return f"{party_name} Membership - {tier}"


def create_membership_charge(gateway, membership_type: str, party_name: str, currency: str = "THB") -> Charge:
    """Create the PromptPay charge for a membership tier; a charge without a QR code is a failure."""
    charge = create_charge(
        gateway,
        amount=amount_in_satang(membership_type),
        currency=currency,
        description=membership_description(membership_type, party_name),
        source={"type": "promptpay"},
    )
    if not charge.qr_image_url:
        logger.error("Charge %s has no scannable code", charge.id)
        raise PaymentCreationError("QR code not generated")
    return charge


class ChargePoller:
    """
    Polls one charge until it reaches a terminal status or the timeout fires.

    Each tick() is one independent status request. A tick that fails to reach the
    gateway is logged and ignored; the timeout is the only backstop. on_success
    runs at most once, no matter how many ticks follow the terminal state.
    """

    def __init__(
        self,
        gateway,
        charge_id: str,
        on_success: Callable[[Charge], Any],
        interval: float = 3,
        timeout: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.charge_id = charge_id
        self.on_success = on_success
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.started_at = clock()
        self.last_tick_at: float | None = None
        self.state = POLL_PROCESSING
        self.reason: str | None = None
        self.charge: Charge | None = None
        self.ticks = 0

    @property
    def finished(self) -> bool:
        return self.state != POLL_PROCESSING

    def due(self) -> bool:
        if self.finished:
            return False
        if self.last_tick_at is None:
            return True
        return self.clock() - self.last_tick_at >= self.interval

    def stop(self, reason: str = "cancelled") -> None:
        if not self.finished:
            self.state = POLL_FAILED
            self.reason = reason
            logger.info("Stopped polling charge %s: %s", self.charge_id, reason)

    def tick(self) -> str:
        if self.finished:
            return self.state

        now = self.clock()
        if now - self.started_at >= self.timeout:
            self.stop("timeout")
            return self.state

        self.last_tick_at = now
        self.ticks += 1
        try:
            charge = Charge.from_gateway(self.gateway.retrieve_charge(self.charge_id))
        except (GatewayError, TypeError, ValueError) as exc:
            logger.warning("Status check for charge %s failed (tick %s): %s", self.charge_id, self.ticks, exc)
            return self.state

        self.charge = charge
        if charge.status == CHARGE_SUCCESSFUL:
            self.state = POLL_SUCCESS
            logger.info("Charge %s successful after %s ticks", self.charge_id, self.ticks)
            self.on_success(charge)
        elif charge.is_terminal:
            self.state = POLL_FAILED
            self.reason = charge.status
            logger.info("Charge %s ended with status %s", self.charge_id, charge.status)
        return self.state

    def run(self, sleep: Callable[[float], Any] = time.sleep) -> str:
        while True:
            self.tick()
            if self.finished:
                return self.state
            sleep(self.interval)


class RecordCommitter:
    """Writes the paid membership record once. A failed write is reported, never retried."""

    def __init__(self, store):
        self.store = store
        self.member_id: str | None = None
        self.error: Exception | None = None
        self._attempted = False

    def commit(self, record: MembershipRecord, charge_id: str) -> str | None:
        if self._attempted:
            return self.member_id
        self._attempted = True

        paid = record.with_changes(payment_status="completed", charge_id=charge_id)
        try:
            self.member_id = self.store.push(paid)
        except Exception as exc:
            # payment already succeeded; the record stays unsaved
            self.error = exc
            logger.exception("Saving membership record failed for charge %s", charge_id)
            return None
        logger.info("Membership record %s saved for charge %s", self.member_id, charge_id)
        return self.member_id


@dataclass
class PaymentSession:
    """One PromptPay attempt for a membership record that is not stored yet."""

    record: MembershipRecord
    charge: Charge
    poller: ChargePoller
    committer: RecordCommitter

    @property
    def state(self) -> str:
        return self.poller.state

    def cancel(self, reason: str = "cancelled") -> None:
        self.poller.stop(reason)


def start_membership_payment(
    gateway,
    store,
    record: MembershipRecord,
    party_name: str,
    currency: str = "THB",
    interval: float = 3,
    timeout: float = 600,
    clock: Callable[[], float] = time.monotonic,
) -> PaymentSession:
    """Create a new charge for the record's tier and wire its poller to commit the record on success."""
    charge = create_membership_charge(gateway, record.membership_type, party_name, currency)
    committer = RecordCommitter(store)
    poller = ChargePoller(
        gateway,
        charge.id,
        on_success=lambda c: committer.commit(record, c.id),
        interval=interval,
        timeout=timeout,
        clock=clock,
    )
    return PaymentSession(record, charge, poller, committer)


def register(
    store,
    gateway,
    record: MembershipRecord,
    party_name: str,
    currency: str = "THB",
    interval: float = 3,
    timeout: float = 600,
    clock: Callable[[], float] = time.monotonic,
) -> str | PaymentSession:
    """
    Submit a validated registration.

    Cash: the record is stored now and its id returned.
    PromptPay: a charge is created and a PaymentSession returned; the record
    is stored only when the session's poller sees the charge succeed.
    """
    if record.payment_method == "cash":
        member_id = store.push(record)
        logger.info("Cash registration saved: %s", member_id)
        return member_id
    return start_membership_payment(
        gateway, store, record, party_name, currency, interval=interval, timeout=timeout, clock=clock
    )
