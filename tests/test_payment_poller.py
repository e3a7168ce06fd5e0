import httpx

from bb_payment_svc.models.payment import Payment
from bb_payment_svc.payment_poller import PaymentStatusClient, PaymentStatusPoller


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.now += seconds


class ScriptedStatus:
    """Returns queued statuses, then repeats the last one."""

    def __init__(self, clock, statuses):
        self.clock = clock
        self.statuses = list(statuses)
        self.calls = []

    def __call__(self, payment_id):
        self.calls.append(self.clock())
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(status, Exception):
            raise status
        return status


def make_poller(clock, check_status):
    return PaymentStatusPoller(check_status, interval=10, timeout=180, clock=clock, sleep=clock.sleep)


def test_timeout_after_budget_without_further_checks():
    clock = FakeClock()
    check = ScriptedStatus(clock, ['pending'])

    result = make_poller(clock, check).poll('p1')

    assert result.outcome == 'timeout'
    assert result.status == 'pending'
    assert clock.now == 180
    assert len(check.calls) == 18
    assert check.calls[0] == 0
    assert all(b - a == 10 for a, b in zip(check.calls, check.calls[1:]))
    assert max(check.calls) < 180


def test_stops_on_first_approval():
    clock = FakeClock()
    check = ScriptedStatus(clock, ['pending', 'pending', 'approved', 'pending'])

    result = make_poller(clock, check).poll('p1')

    assert result.outcome == 'approved'
    assert result.attempts == 3
    assert len(check.calls) == 3


def test_stops_on_rejection():
    clock = FakeClock()
    check = ScriptedStatus(clock, ['rejected'])

    result = make_poller(clock, check).poll('p1')

    assert result.outcome == 'rejected'
    assert result.attempts == 1


def test_transport_errors_keep_polling():
    clock = FakeClock()
    check = ScriptedStatus(clock, [httpx.ConnectError('connection refused'), 'approved'])

    result = make_poller(clock, check).poll('p1')

    assert result.outcome == 'approved'
    assert result.attempts == 2


def test_client_reads_status_from_api(client, db_session, plans):
    db_session.add(Payment(id="p1", user_id="u1", plan_id="1", amount=29.90, status="approved"))
    db_session.commit()
    status_client = PaymentStatusClient(http_client=client)

    assert status_client.check_payment_status("p1") == "approved"
    result = PaymentStatusPoller(status_client.check_payment_status).poll("p1")
    assert result.outcome == "approved"


def test_client_not_found_is_a_transport_error(client):
    status_client = PaymentStatusClient(http_client=client)
    clock = FakeClock()

    result = make_poller(clock, status_client.check_payment_status).poll("missing")

    assert result.outcome == "timeout"
    assert result.status is None
