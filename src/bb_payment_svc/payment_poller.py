"""Client side of the payment confirmation flow.

After the buyer leaves the hosted checkout the app polls the status endpoint
until the payment reaches a terminal status or the wait budget runs out. A
timeout is final: the user has to start the payment again.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from bb_payment_svc.models.payment import TERMINAL_STATUSES

POLL_INTERVAL_SECONDS = 10.0
POLL_TIMEOUT_SECONDS = 180.0

OUTCOME_TIMEOUT = 'timeout'


@dataclass
class PollResult:
    outcome: str  # approved, rejected or timeout
    status: Optional[str]
    attempts: int


class PaymentStatusClient:
    """Reads payment status from the payments API."""

    def __init__(self, base_url: str = '', http_client: Optional[httpx.Client] = None, timeout: float = 10.0) -> None:
        self.http_client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def check_payment_status(self, payment_id: str) -> str:
        response = self.http_client.get('/api/payments/status', params={'paymentId': payment_id})
        response.raise_for_status()
        return response.json()['payment']['status']

    def close(self) -> None:
        self.http_client.close()


class PaymentStatusPoller:
    def __init__(
        self,
        check_status: Callable[[str], str],
        interval: float = POLL_INTERVAL_SECONDS,
        timeout: float = POLL_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.check_status = check_status
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep

    def poll(self, payment_id: str) -> PollResult:
        started = self.clock()
        attempts = 0
        last_status = None
        while True:
            elapsed = self.clock() - started
            if elapsed >= self.timeout:
                logging.info(f"Payment {payment_id} still {last_status} after {self.timeout:.0f}s, giving up.")
                return PollResult(outcome=OUTCOME_TIMEOUT, status=last_status, attempts=attempts)

            attempts += 1
            try:
                last_status = self.check_status(payment_id)
            except httpx.HTTPError as e:
                logging.error(f"Status check {attempts} for payment {payment_id} failed: {e}")
            else:
                if last_status in TERMINAL_STATUSES:
                    return PollResult(outcome=last_status, status=last_status, attempts=attempts)

            remaining = self.timeout - (self.clock() - started)
            self.sleep(max(0.0, min(self.interval, remaining)))
