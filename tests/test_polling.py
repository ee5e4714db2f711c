import threading
from types import SimpleNamespace

import pytest

from boutique_kit import polling


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_wait_until_returns_first_truthy_value() -> None:
    fake = _FakeClock()
    values = iter([None, None, "10.0.0.1"])

    result = polling.wait_until(
        lambda: next(values), timeout=60, interval=5, sleep=fake.sleep, clock=fake.clock
    )

    assert result == "10.0.0.1"
    assert fake.sleeps == [5, 5]


def test_wait_until_times_out() -> None:
    fake = _FakeClock()
    calls = []

    def never() -> bool:
        calls.append(fake.now)
        return False

    result = polling.wait_until(never, timeout=25, interval=10, sleep=fake.sleep, clock=fake.clock)

    assert result is None
    # 0, 10, 20, 25 초에 확인 (마지막 대기는 남은 시간만큼만)
    assert calls == [0, 10, 20, 25]
    assert fake.sleeps == [10, 10, 5]


def test_wait_until_raises_when_cancelled() -> None:
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(polling.PollCancelled):
        polling.wait_until(lambda: False, timeout=60, interval=1, cancel_event=cancel)


def test_wait_until_cancel_during_wait() -> None:
    cancel = threading.Event()

    def predicate() -> bool:
        # 첫 확인 직후 취소 요청
        cancel.set()
        return False

    with pytest.raises(polling.PollCancelled):
        polling.wait_until(predicate, timeout=60, interval=30, cancel_event=cancel)


def test_wait_for_pods_succeeds_when_count_matches(monkeypatch: pytest.MonkeyPatch) -> None:
    counts = iter([3, 9, 12])
    monkeypatch.setattr(polling.kube, "count_running_pods", lambda ns: next(counts))
    sleeps: list[float] = []

    ok = polling.wait_for_pods("default", 12, timeout=300, interval=10, sleep=sleeps.append)

    assert ok is True
    assert sleeps == [10, 10]


def test_wait_for_pods_returns_false_on_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(polling.kube, "count_running_pods", lambda ns: 11)
    fake = _FakeClock()
    monkeypatch.setattr(polling, "time", SimpleNamespace(monotonic=fake.clock, sleep=fake.sleep))

    ok = polling.wait_for_pods("default", 12, timeout=30, interval=10, sleep=fake.sleep)

    assert ok is False


def test_wait_for_external_ip(monkeypatch: pytest.MonkeyPatch) -> None:
    ips = iter([None, "34.1.2.3"])
    monkeypatch.setattr(polling.kube, "get_service_external_ip", lambda name, ns: next(ips))

    ip = polling.wait_for_external_ip(
        "prometheus-grafana", "monitoring", timeout=60, interval=5, sleep=lambda s: None
    )

    assert ip == "34.1.2.3"
