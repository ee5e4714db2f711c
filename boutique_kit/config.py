from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, List

from dotenv import load_dotenv


ENV_FILES_DEFAULT_ORDER = [".env", ".env.infra"]

DEFAULT_REPO_URL = "https://github.com/GoogleCloudPlatform/microservices-demo.git"
DEFAULT_HELM_REPO_URL = "https://prometheus-community.github.io/helm-charts"


def load_env_files(base_dir: str = ".",
                   files: Optional[List[str]] = None) -> None:
    """
    주어진 디렉토리에서 .env 계열 파일을 순서대로 로드한다.
    후순위 파일이 같은 키를 덮어쓴다.
    """
    order = files or ENV_FILES_DEFAULT_ORDER
    for name in order:
        path = os.path.join(base_dir, name)
        if os.path.exists(path):
            load_dotenv(path, override=True)


_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FALSE_VALUES = {"0", "false", "no", "n", "off"}


def _get_bool(name: str, default: bool = False) -> Optional[bool]:
    """true/false 계열 문자열을 bool 로 변환한다. 알 수 없는 값이면 None."""
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return None


@dataclass
class DeployConfig:
    # 필수 공통
    gcp_project_id: str

    # GKE 클러스터
    zone: str = "us-east1-b"
    cluster_name: str = "boutique-cluster"
    num_nodes: int = 3
    disk_size_gb: int = 80
    machine_type: str = "e2-medium"
    cluster_create_timeout: int = 1200

    # Online Boutique
    repo_url: str = DEFAULT_REPO_URL
    repo_dir: str = "microservices-demo"
    app_namespace: str = "default"
    expected_pods: int = 12
    tune_resources: bool = True
    cpu_request: str = "50m"
    cpu_limit: str = "100m"

    # 모니터링
    monitoring_namespace: str = "monitoring"
    helm_repo_name: str = "prometheus-community"
    helm_repo_url: str = DEFAULT_HELM_REPO_URL
    helm_release: str = "prometheus"
    helm_chart: str = "prometheus-community/kube-prometheus-stack"

    # 대기(polling)
    pod_wait_timeout: int = 300
    pod_wait_interval: int = 10
    external_ip_timeout: int = 120
    external_ip_interval: int = 5

    # 도구 설치
    install_missing_tools: bool = False

    @property
    def grafana_service(self) -> str:
        return f"{self.helm_release}-grafana"

    @classmethod
    def from_env(cls) -> "DeployConfig":
        # 필수값
        missing: List[str] = []
        invalid: List[str] = []

        def req(name: str) -> str:
            val = os.getenv(name)
            if not val:
                missing.append(name)
            return val or ""

        def opt(name: str, default: str) -> str:
            val = os.getenv(name)
            return val if val else default

        def flag(name: str, default: bool) -> bool:
            value = _get_bool(name, default)
            if value is None:
                invalid.append(f"{name}={os.getenv(name)!r}")
                return default
            return value

        def num(name: str, default: int) -> int:
            raw = os.getenv(name)
            if raw is None or raw.strip() == "":
                return default
            try:
                value = int(raw)
            except ValueError:
                invalid.append(f"{name}={raw!r}")
                return default
            if value <= 0:
                invalid.append(f"{name}={raw!r}")
            return value

        cfg = cls(
            gcp_project_id=req("GCP_PROJECT_ID"),
            zone=opt("GKE_ZONE", "us-east1-b"),
            cluster_name=opt("GKE_CLUSTER_NAME", "boutique-cluster"),
            num_nodes=num("GKE_NUM_NODES", 3),
            disk_size_gb=num("GKE_DISK_SIZE_GB", 80),
            machine_type=opt("GKE_MACHINE_TYPE", "e2-medium"),
            cluster_create_timeout=num("CLUSTER_CREATE_TIMEOUT_SECONDS", 1200),
            repo_url=opt("BOUTIQUE_REPO_URL", DEFAULT_REPO_URL),
            repo_dir=opt("BOUTIQUE_REPO_DIR", "microservices-demo"),
            app_namespace=opt("BOUTIQUE_NAMESPACE", "default"),
            expected_pods=num("BOUTIQUE_EXPECTED_PODS", 12),
            tune_resources=flag("TUNE_RESOURCES", True),
            cpu_request=opt("CPU_REQUEST", "50m"),
            cpu_limit=opt("CPU_LIMIT", "100m"),
            monitoring_namespace=opt("MONITORING_NAMESPACE", "monitoring"),
            helm_repo_name=opt("HELM_REPO_NAME", "prometheus-community"),
            helm_repo_url=opt("HELM_REPO_URL", DEFAULT_HELM_REPO_URL),
            helm_release=opt("HELM_RELEASE_NAME", "prometheus"),
            helm_chart=opt("HELM_CHART", "prometheus-community/kube-prometheus-stack"),
            pod_wait_timeout=num("POD_WAIT_TIMEOUT_SECONDS", 300),
            pod_wait_interval=num("POD_WAIT_INTERVAL_SECONDS", 10),
            external_ip_timeout=num("EXTERNAL_IP_TIMEOUT_SECONDS", 120),
            external_ip_interval=num("EXTERNAL_IP_INTERVAL_SECONDS", 5),
            install_missing_tools=flag("INSTALL_MISSING_TOOLS", False),
        )

        if missing:
            raise ValueError(
                "필수 환경변수가 누락되었습니다: " + ", ".join(sorted(set(missing)))
            )
        if invalid:
            raise ValueError(
                "환경변수 값이 잘못되었습니다 (양의 정수 또는 true/false): " + ", ".join(invalid)
            )

        return cfg
