"""
monitoring
----------

kube-prometheus-stack(Prometheus + Grafana) 설치와 Grafana 외부 노출을 담당하는 모듈.
"""

from __future__ import annotations

import threading
from typing import Optional

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError
from . import helm, kube, polling


logger = get_logger(__name__)


def install_stack(cfg: DeployConfig) -> bool:
    """
    네임스페이스/리포 준비 후 차트를 설치한다.

    Returns:
        새로 설치했으면 True, 이미 설치되어 있으면 False
    """
    kube.ensure_namespace(cfg.monitoring_namespace)

    helm.add_repo(cfg.helm_repo_name, cfg.helm_repo_url)
    helm.update_repos()

    if helm.is_release_installed(cfg.helm_release, cfg.monitoring_namespace):
        logger.warning("'%s' 릴리스가 이미 설치되어 있습니다. 설치를 건너뜁니다.", cfg.helm_release)
        return False

    helm.install_chart(cfg.helm_release, cfg.helm_chart, cfg.monitoring_namespace)
    logger.info("%s 설치 완료", cfg.helm_chart)
    return True


def expose_grafana(
    cfg: DeployConfig,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[str]:
    """
    Grafana 서비스를 LoadBalancer 로 바꾸고 외부 IP 를 기다린다.
    patch 실패는 이미 노출된 것으로 보고 경고만 남긴다.
    """
    try:
        kube.patch_service_type(cfg.grafana_service, cfg.monitoring_namespace, "LoadBalancer")
    except CommandError as e:
        logger.warning("Grafana 서비스 patch 실패 (이미 노출되었을 수 있음): %s", e)

    return polling.wait_for_external_ip(
        cfg.grafana_service,
        cfg.monitoring_namespace,
        timeout=cfg.external_ip_timeout,
        interval=cfg.external_ip_interval,
        cancel_event=cancel_event,
    )


def install_monitoring(
    cfg: DeployConfig,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[str]:
    """
    모니터링 스택 설치 + Grafana 노출.

    Returns:
        Grafana 외부 IP (아직 할당 전이면 None)
    """
    logger.info("모니터링 스택 설치: namespace=%s", cfg.monitoring_namespace)
    install_stack(cfg)
    return expose_grafana(cfg, cancel_event=cancel_event)


def uninstall_monitoring(cfg: DeployConfig) -> bool:
    return helm.uninstall_release(cfg.helm_release, cfg.monitoring_namespace)
