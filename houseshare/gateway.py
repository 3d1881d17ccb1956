"""
PAYMENT GATEWAY
===============

Verify(reference) -> VerificationResult(status, amount)

The wallet service only credits when status == 'success'.
PaystackGateway talks to the Paystack verify endpoint with a bounded timeout.
StubGateway answers from a dict and is used for tests and local runs.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

import requests
import structlog

log = structlog.get_logger(__name__)

SUCCESS = 'success'


class GatewayError(Exception):
    """Raised when the gateway cannot be reached or answers garbage"""
    pass


@dataclass(frozen=True)
class VerificationResult:
    status: str
    amount: Decimal
    reference: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCESS


class PaystackGateway:
    """Paystack amounts are in minor units (kobo); converted to main units here."""

    def __init__(self, secret_key: str, base_url: str = 'https://api.paystack.co',
                 timeout: float = 10, session: Optional[requests.Session] = None):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def verify(self, reference: str) -> VerificationResult:
        url = f"{self.base_url}/transaction/verify/{reference}"
        try:
            response = self.session.get(
                url,
                headers={'Authorization': f'Bearer {self.secret_key}'},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json().get('data') or {}
            status = data.get('status', 'failed')
            amount = Decimal(str(data.get('amount') or 0)) / 100
        except (requests.RequestException, ValueError, InvalidOperation,
                AttributeError, TypeError) as e:
            log.warning("gateway_verify_failed", reference=reference, error=str(e))
            raise GatewayError(f"Verification request failed: {e}") from e

        if not amount.is_finite():
            log.warning("gateway_verify_failed", reference=reference, error="non-finite amount")
            raise GatewayError(f"Verification returned an invalid amount for {reference}")
        return VerificationResult(status=status, amount=amount, reference=reference)


class StubGateway:
    """In-process gateway: register references with their status and amount."""

    def __init__(self, payments=None):
        self.payments = dict(payments or {})
        self.calls = []

    def register(self, reference, amount, status=SUCCESS):
        self.payments[reference] = (status, Decimal(str(amount)))

    def verify(self, reference: str) -> VerificationResult:
        self.calls.append(reference)
        if reference not in self.payments:
            return VerificationResult(status='failed', amount=Decimal('0'), reference=reference)
        status, amount = self.payments[reference]
        return VerificationResult(status=status, amount=amount, reference=reference)
