from __future__ import annotations

import threading
import time

import pytest

from chirp.lib.notifications import BatchDispatcher, Recipient, SendError


def _recipients(count: int) -> list[Recipient]:
    return [Recipient(email=f"r{n}@example.org") for n in range(1, count + 1)]


def test_one_failing_recipient_does_not_block_the_others():
    attempted = []
    lock = threading.Lock()

    def send(recipient: Recipient) -> None:
        with lock:
            attempted.append(recipient.email)
        if recipient.email == "r3@example.org":
            raise SendError("mailbox full")

    report = BatchDispatcher(max_workers=3).dispatch(_recipients(5), send)

    assert (report.total_recipients, report.succeeded, report.failed) == (5, 4, 1)
    assert sorted(attempted) == sorted(r.email for r in _recipients(5))
    assert report.failures[0].recipient == "r3@example.org"
    assert report.failures[0].error == "mailbox full"


def test_empty_recipient_list_reports_zero():
    calls = []
    report = BatchDispatcher().dispatch([], calls.append)
    assert (report.total_recipients, report.succeeded, report.failed) == (0, 0, 0)
    assert calls == []


@pytest.mark.parametrize("count", [1, 2, 7, 25])
def test_report_counts_always_add_up(count):
    def send(recipient: Recipient) -> None:
        if int(recipient.email[1:].split("@")[0]) % 2:
            raise RuntimeError("odd recipients fail")

    report = BatchDispatcher(max_workers=4).dispatch(_recipients(count), send)

    assert report.succeeded + report.failed == report.total_recipients == count
    assert report.failed == (count + 1) // 2
    assert report.cancelled == 0


def test_unexpected_exceptions_are_counted_as_failures():
    def send(recipient: Recipient) -> None:
        raise KeyError(recipient.email)

    report = BatchDispatcher().dispatch(_recipients(3), send)
    assert report.failed == 3
    assert report.succeeded == 0


def test_concurrency_is_bounded_by_max_workers():
    in_flight = 0
    peak = 0
    lock = threading.Lock()

    def send(recipient: Recipient) -> None:
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.02)
        with lock:
            in_flight -= 1

    report = BatchDispatcher(max_workers=2).dispatch(_recipients(8), send)

    assert report.succeeded == 8
    assert peak <= 2


def test_timeout_reports_only_completed_sends():
    release = threading.Event()

    def send(recipient: Recipient) -> None:
        if recipient.email != "r1@example.org":
            release.wait(5)

    dispatcher = BatchDispatcher(max_workers=1, timeout=0.3)
    try:
        report = dispatcher.dispatch(_recipients(3), send)
    finally:
        release.set()

    assert report.total_recipients == 1
    assert report.succeeded == 1
    assert report.failed == 0
    assert report.cancelled == 2


def test_dispatcher_rejects_invalid_settings():
    with pytest.raises(ValueError):
        BatchDispatcher(max_workers=0)
    with pytest.raises(ValueError):
        BatchDispatcher(timeout=0)


def test_report_serializes_with_response_keys():
    report = BatchDispatcher().dispatch(_recipients(2), lambda recipient: None)
    assert report.to_dict() == {"total": 2, "successful": 2, "failed": 0, "cancelled": 0}
