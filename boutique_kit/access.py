"""
access
------

배포 완료 후 접속 정보(Online Boutique / Grafana URL, Grafana 계정)를 모아 출력용 텍스트로 만든다.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .config import DeployConfig
from . import kube


FRONTEND_SERVICE = "frontend-external"
GRAFANA_ADMIN_USER = "admin"
GRAFANA_PASSWORD_KEY = "admin-password"
PENDING = "Pending"


@dataclass
class AccessInfo:
    frontend_ip: Optional[str]
    grafana_ip: Optional[str]
    grafana_user: str = GRAFANA_ADMIN_USER
    grafana_password: Optional[str] = None


def collect_access_info(cfg: DeployConfig) -> AccessInfo:
    return AccessInfo(
        frontend_ip=kube.get_service_external_ip(FRONTEND_SERVICE, cfg.app_namespace),
        grafana_ip=kube.get_service_external_ip(cfg.grafana_service, cfg.monitoring_namespace),
        grafana_password=kube.get_secret_value(
            cfg.grafana_service, cfg.monitoring_namespace, GRAFANA_PASSWORD_KEY
        ),
    )


def recommended_queries(namespace: str) -> List[tuple[str, str]]:
    return [
        (
            "CPU per pod",
            f'sum(rate(container_cpu_usage_seconds_total{{namespace="{namespace}"}}[5m])) by (pod)',
        ),
        (
            "Memory per pod",
            f'sum(container_memory_working_set_bytes{{namespace="{namespace}"}}) by (pod)',
        ),
    ]


def _url(ip: Optional[str]) -> str:
    return f"http://{ip}" if ip else PENDING


def render_access_info(info: AccessInfo, namespace: str = "default") -> str:
    bar = "=" * 60
    lines: List[str] = [
        bar,
        "  Access information",
        bar,
        "",
        "  Online Boutique:",
        f"    URL: {_url(info.frontend_ip)}",
        "",
        "  Grafana:",
        f"    URL: {_url(info.grafana_ip)}",
        f"    User: {info.grafana_user}",
        f"    Password: {info.grafana_password or '(시크릿을 읽을 수 없습니다)'}",
        "",
        "  Recommended Grafana queries:",
    ]
    for title, query in recommended_queries(namespace):
        lines.append(f"    {title}:")
        lines.append(f"      {query}")
    lines.append("")
    lines.append(bar)
    return "\n".join(lines)
