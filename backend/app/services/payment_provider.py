"""
Payment provider collaborators.
The core only asks one question of a provider: did this session's
transaction go through? Anything other than a clear yes counts as no.
"""

import asyncio
import logging
from abc import ABC, abstractmethod

import requests

from app.config import get_settings

logger = logging.getLogger(__name__)


class PaymentProvider(ABC):
    @abstractmethod
    async def verify_transaction(self, session_id: str) -> bool:
        """True only when the transaction behind the session went through."""


class SimulatedPaymentProvider(PaymentProvider):
    """Approves every transaction after a short processing delay."""

    def __init__(self, delay: float = 0.1, approve: bool = True):
        self.delay = delay
        self.approve = approve

    async def verify_transaction(self, session_id: str) -> bool:
        await asyncio.sleep(self.delay)
        return self.approve


class GatewayPaymentProvider(PaymentProvider):
    """Asks an HTTP payment gateway whether a session was paid."""

    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Accept": "application/json"})

    def _verify(self, session_id: str) -> bool:
        try:
            response = self.session.post(
                f"{self.base_url}/verify",
                json={"session_id": session_id},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
            return isinstance(payload, dict) and payload.get("verified") is True
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Payment gateway verification failed for {session_id}: {e}")
            return False

    async def verify_transaction(self, session_id: str) -> bool:
        return await asyncio.to_thread(self._verify, session_id)


def get_payment_provider() -> PaymentProvider:
    """Dependency returning the configured payment provider."""
    settings = get_settings()
    if settings.payment_provider == "gateway":
        if not settings.payment_gateway_url:
            raise ValueError("payment_gateway_url is required for the gateway provider")
        return GatewayPaymentProvider(settings.payment_gateway_url, timeout=settings.payment_verify_timeout)
    return SimulatedPaymentProvider(delay=settings.payment_simulated_delay)
