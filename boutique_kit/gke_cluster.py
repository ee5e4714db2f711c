"""
gke_cluster
-----------

GKE 클러스터 조회/생성/삭제와 kubectl 자격증명 설정을 담당하는 모듈.
클러스터 API 는 google-cloud-container 클라이언트로, kubeconfig 갱신은 gcloud 로 처리한다.
"""

from __future__ import annotations

import threading
from typing import Optional

from google.api_core.exceptions import NotFound, PermissionDenied
from google.cloud import container_v1

from .config import DeployConfig
from .logging_utils import get_logger
from .polling import PollCancelled, wait_until
from .subprocess_utils import run_command
from . import gcp_project


logger = get_logger(__name__)


OPERATION_POLL_SECONDS = 15


def _client() -> container_v1.ClusterManagerClient:
    return container_v1.ClusterManagerClient()


def _location(cfg: DeployConfig) -> str:
    return f"projects/{cfg.gcp_project_id}/locations/{cfg.zone}"


def _cluster_path(cfg: DeployConfig) -> str:
    return f"{_location(cfg)}/clusters/{cfg.cluster_name}"


def get_cluster(cfg: DeployConfig, client: Optional[container_v1.ClusterManagerClient] = None):  # noqa: ANN201
    """클러스터 객체. 없으면 None."""
    client = client or _client()
    try:
        return client.get_cluster(name=_cluster_path(cfg))
    except NotFound:
        return None


def cluster_exists(cfg: DeployConfig, client: Optional[container_v1.ClusterManagerClient] = None) -> bool:
    return get_cluster(cfg, client) is not None


def _build_cluster(cfg: DeployConfig) -> container_v1.Cluster:
    node_config = container_v1.NodeConfig(
        machine_type=cfg.machine_type,
        disk_size_gb=cfg.disk_size_gb,
    )
    node_pool = container_v1.NodePool(
        name="default-pool",
        config=node_config,
        initial_node_count=cfg.num_nodes,
    )
    return container_v1.Cluster(
        name=cfg.cluster_name,
        locations=[cfg.zone],
        node_pools=[node_pool],
    )


def _wait_for_operation(
    cfg: DeployConfig,
    client: container_v1.ClusterManagerClient,
    operation,  # noqa: ANN001
    *,
    what: str,
    cancel_event: Optional[threading.Event] = None,
) -> None:
    op_name = f"{_location(cfg)}/operations/{operation.name.split('/')[-1]}"
    logger.info("GKE 작업 진행 중: %s (%s)", what, op_name)

    def _done():  # noqa: ANN202
        current = client.get_operation(name=op_name)
        logger.debug("GKE 작업 상태: %s", current.status.name)
        if current.status == container_v1.Operation.Status.ABORTING:
            raise RuntimeError(f"GKE 작업이 중단되었습니다 ({what}): {current.error.message}")
        if current.status == container_v1.Operation.Status.DONE:
            return current
        return None

    finished = wait_until(
        _done,
        timeout=cfg.cluster_create_timeout,
        interval=OPERATION_POLL_SECONDS,
        cancel_event=cancel_event,
    )
    if finished is None:
        raise RuntimeError(
            f"GKE 작업이 {cfg.cluster_create_timeout}초 안에 끝나지 않았습니다 ({what}): {op_name}"
        )
    if finished.error and finished.error.message:
        raise RuntimeError(f"GKE 작업 실패 ({what}): {finished.error.message}")


def ensure_cluster(
    cfg: DeployConfig,
    client: Optional[container_v1.ClusterManagerClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> bool:
    """
    클러스터가 없으면 생성한다.

    Returns:
        새로 생성했으면 True, 기존 클러스터를 사용하면 False
    """
    client = client or _client()
    # API 가 꺼져 있으면 클러스터 조회부터 403 이 나므로 먼저 enable 한다.
    gcp_project.enable_container_api(cfg)
    if cluster_exists(cfg, client):
        logger.warning("클러스터 '%s' 가 이미 존재합니다. 생성을 건너뜁니다.", cfg.cluster_name)
        return False

    logger.info(
        "클러스터 '%s' 생성: zone=%s nodes=%d machine=%s disk=%dGB",
        cfg.cluster_name,
        cfg.zone,
        cfg.num_nodes,
        cfg.machine_type,
        cfg.disk_size_gb,
    )
    try:
        operation = client.create_cluster(parent=_location(cfg), cluster=_build_cluster(cfg))
        _wait_for_operation(cfg, client, operation, what="create", cancel_event=cancel_event)
    except PollCancelled:
        raise
    except RuntimeError as e:
        raise RuntimeError(f"클러스터 생성에 실패했습니다. 프로젝트 quota 를 확인하세요: {e}") from e

    logger.info("클러스터 생성 완료: %s", cfg.cluster_name)
    return True


def get_credentials(cfg: DeployConfig) -> None:
    """kubectl 이 클러스터를 바라보도록 kubeconfig 를 갱신한다."""
    run_command(
        [
            "gcloud",
            "container",
            "clusters",
            "get-credentials",
            cfg.cluster_name,
            f"--zone={cfg.zone}",
            f"--project={cfg.gcp_project_id}",
        ]
    )
    logger.info("kubectl 을 클러스터에 연결했습니다: %s", cfg.cluster_name)


def delete_cluster(
    cfg: DeployConfig,
    client: Optional[container_v1.ClusterManagerClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> bool:
    client = client or _client()
    if not cluster_exists(cfg, client):
        logger.warning("클러스터 '%s' 가 없어 삭제를 건너뜁니다.", cfg.cluster_name)
        return False

    logger.info("클러스터 삭제: %s", cfg.cluster_name)
    operation = client.delete_cluster(name=_cluster_path(cfg))
    _wait_for_operation(cfg, client, operation, what="delete", cancel_event=cancel_event)
    logger.info("클러스터 삭제 완료: %s", cfg.cluster_name)
    return True


def check_cluster(cfg: DeployConfig, client: Optional[container_v1.ClusterManagerClient] = None) -> str:
    try:
        cluster = get_cluster(cfg, client)
    except PermissionDenied:
        return f"Cluster: 알 수 없음 (GKE API 비활성화 또는 권한 없음) ({cfg.cluster_name})"
    if cluster is None:
        return f"Cluster: 없음 (배포 시 생성됨) ({cfg.cluster_name})"
    return f"Cluster: 존재함 ({cfg.cluster_name}, status={cluster.status.name})"
