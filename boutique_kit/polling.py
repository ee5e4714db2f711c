"""
polling
-------

고정 간격 polling 유틸.
파드 Running 대기, LoadBalancer 외부 IP 대기, GKE operation 완료 대기에 공통으로 사용한다.
cancel_event 가 set 되면 다음 대기 구간에서 즉시 PollCancelled 를 던진다.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional, TypeVar

from . import kube
from .logging_utils import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


class PollCancelled(RuntimeError):
    """polling 도중 cancel_event 로 중단됨."""


def wait_until(
    predicate: Callable[[], Optional[T]],
    *,
    timeout: float,
    interval: float,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
    clock: Optional[Callable[[], float]] = None,
) -> Optional[T]:
    """
    predicate 가 truthy 값을 돌려줄 때까지 interval 초 간격으로 호출한다.

    Returns:
        predicate 의 truthy 반환값. timeout 안에 조건이 만족되지 않으면 None.

    Raises:
        PollCancelled: cancel_event 가 set 된 경우
    """
    sleep = sleep or time.sleep
    clock = clock or time.monotonic
    deadline = clock() + float(timeout)
    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise PollCancelled("대기가 취소되었습니다.")

        result = predicate()
        if result:
            return result

        remaining = deadline - clock()
        if remaining <= 0:
            return None

        pause = min(float(interval), remaining)
        if cancel_event is not None:
            # Event.wait 는 set 되는 즉시 깨어난다.
            if cancel_event.wait(pause):
                raise PollCancelled("대기가 취소되었습니다.")
        else:
            sleep(pause)


def wait_for_pods(
    namespace: str,
    expected: int,
    *,
    timeout: float = 300,
    interval: float = 10,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> bool:
    """
    namespace 의 Running 파드 수가 expected 와 같아질 때까지 기다린다.
    timeout 이면 False (경고만 남기고 배포는 계속한다).
    """
    logger.info("파드가 준비될 때까지 대기합니다... (namespace=%s, 기대값=%d)", namespace, expected)

    def _ready() -> bool:
        running = kube.count_running_pods(namespace)
        logger.info("  Pods Running: %d / %d", running, expected)
        return running == expected

    ok = bool(
        wait_until(_ready, timeout=timeout, interval=interval, cancel_event=cancel_event, sleep=sleep)
    )
    if ok:
        logger.info("모든 파드가 Running 상태입니다.")
    else:
        logger.warning("파드 대기 timeout(%ss). 일부 파드가 아직 준비되지 않았을 수 있습니다.", timeout)
    return ok


def wait_for_external_ip(
    service: str,
    namespace: str,
    *,
    timeout: float = 120,
    interval: float = 5,
    cancel_event: Optional[threading.Event] = None,
    sleep: Optional[Callable[[float], None]] = None,
) -> Optional[str]:
    """
    LoadBalancer 서비스에 외부 IP 가 할당될 때까지 기다린다.
    timeout 이면 None.
    """
    logger.info("외부 IP 할당 대기: %s/%s", namespace, service)
    ip = wait_until(
        lambda: kube.get_service_external_ip(service, namespace),
        timeout=timeout,
        interval=interval,
        cancel_event=cancel_event,
        sleep=sleep,
    )
    if ip:
        logger.info("외부 IP 할당됨: %s -> %s", service, ip)
    else:
        logger.warning("외부 IP 가 아직 할당되지 않았습니다: %s (timeout=%ss)", service, timeout)
    return ip
