"""
Payment provider tests. Gateway calls are intercepted at requests.Session.post.
"""

import pytest
import requests

from app.config import get_settings
from app.services.payment_provider import (
    GatewayPaymentProvider,
    PaymentProvider,
    SimulatedPaymentProvider,
    get_payment_provider,
)


class FakeResponse:

    def __init__(self, payload=None, status_code=200, invalid_json=False):
        self.payload = payload
        self.status_code = status_code
        self.invalid_json = invalid_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if self.invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self.payload


def answer_with(monkeypatch, response=None, error=None):
    calls = []

    def fake_post(self, url, **kwargs):
        calls.append((url, kwargs))
        if error:
            raise error
        return response

    monkeypatch.setattr(requests.Session, "post", fake_post)
    return calls


class TestGatewayProvider:

    @pytest.mark.asyncio
    async def test_confirmed_transaction(self, monkeypatch):
        calls = answer_with(monkeypatch, FakeResponse({"verified": True}))

        provider = GatewayPaymentProvider("https://pay.example.com/", timeout=3)
        assert await provider.verify_transaction("pay_1") is True

        [(url, kwargs)] = calls
        assert url == "https://pay.example.com/verify"
        assert kwargs["json"] == {"session_id": "pay_1"}
        assert kwargs["timeout"] == 3

    @pytest.mark.asyncio
    async def test_connection_error_is_a_decline(self, monkeypatch):
        answer_with(monkeypatch, error=requests.ConnectionError("connection refused"))
        provider = GatewayPaymentProvider("https://pay.example.com")
        assert await provider.verify_transaction("pay_1") is False

    @pytest.mark.asyncio
    async def test_timeout_is_a_decline(self, monkeypatch):
        answer_with(monkeypatch, error=requests.Timeout("read timed out"))
        provider = GatewayPaymentProvider("https://pay.example.com")
        assert await provider.verify_transaction("pay_1") is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        FakeResponse(invalid_json=True),
        FakeResponse({"verified": "yes"}),
        FakeResponse({"verified": 1}),
        FakeResponse({"status": "ok"}),
        FakeResponse(["verified"]),
        FakeResponse({"verified": True}, status_code=502),
    ])
    async def test_anything_but_a_clear_yes_is_a_decline(self, monkeypatch, response):
        answer_with(monkeypatch, response)
        provider = GatewayPaymentProvider("https://pay.example.com")
        assert await provider.verify_transaction("pay_1") is False


class TestSimulatedProvider:

    @pytest.mark.asyncio
    async def test_approves(self):
        assert await SimulatedPaymentProvider(delay=0).verify_transaction("pay_1") is True

    @pytest.mark.asyncio
    async def test_can_be_told_to_decline(self):
        assert await SimulatedPaymentProvider(delay=0, approve=False).verify_transaction("pay_1") is False


class TestProviderSelection:

    def test_simulated_by_default(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "payment_provider", "simulated")
        monkeypatch.setattr(get_settings(), "payment_simulated_delay", 0.25)

        provider = get_payment_provider()
        assert isinstance(provider, SimulatedPaymentProvider)
        assert provider.delay == 0.25

    def test_gateway_needs_a_url(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "payment_provider", "gateway")
        monkeypatch.setattr(get_settings(), "payment_gateway_url", "")

        with pytest.raises(ValueError):
            get_payment_provider()

    def test_gateway(self, monkeypatch):
        monkeypatch.setattr(get_settings(), "payment_provider", "gateway")
        monkeypatch.setattr(get_settings(), "payment_gateway_url", "https://pay.example.com")
        monkeypatch.setattr(get_settings(), "payment_verify_timeout", 2.0)

        provider = get_payment_provider()
        assert isinstance(provider, GatewayPaymentProvider)
        assert provider.base_url == "https://pay.example.com"
        assert provider.timeout == 2.0

    def test_provider_interface_is_abstract(self):
        with pytest.raises(TypeError):
            PaymentProvider()
