from __future__ import annotations

import threading
from typing import Iterable, List, Optional

from .config import DeployConfig
from .logging_utils import get_logger
from .polling import PollCancelled
from . import (
    access,
    gcp_project,
    gke_cluster,
    kube,
    manifests,
    monitoring,
    polling,
    tools,
)


logger = get_logger(__name__)

# CLI 등에서 사용할 수 있도록 단계 이름을 상수로 노출 (실행 순서)
ALL_STEPS: List[str] = [
    "tools",
    "project",
    "cluster",
    "boutique",
    "monitoring",
    "access",
]


def _filter_steps(only_steps: Optional[Iterable[str]]) -> List[str]:
    if only_steps:
        requested = {s for s in only_steps}
        return [s for s in ALL_STEPS if s in requested]
    return list(ALL_STEPS)


def plan_all(cfg: DeployConfig) -> str:
    """
    현재 설정과 실행될 단계를 요약 텍스트로 리턴한다. 실제 GCP/k8s 호출은 하지 않는다.
    """
    lines: List[str] = []
    lines.append("# Deploy plan")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- zone: {cfg.zone}")
    lines.append("")

    lines.append("## Cluster")
    lines.append(f"- name: {cfg.cluster_name}")
    lines.append(f"- nodes: {cfg.num_nodes} x {cfg.machine_type} ({cfg.disk_size_gb}GB disk)")
    lines.append("")

    lines.append("## Online Boutique")
    lines.append(f"- repo: {cfg.repo_url} -> {cfg.repo_dir}")
    lines.append(f"- namespace: {cfg.app_namespace}")
    lines.append(f"- expected pods: {cfg.expected_pods}")
    if cfg.tune_resources:
        lines.append(f"- resource tuning: cpu request={cfg.cpu_request}, limit={cfg.cpu_limit}")
    else:
        lines.append("- resource tuning: disabled")
    lines.append("")

    lines.append("## Monitoring")
    lines.append(f"- namespace: {cfg.monitoring_namespace}")
    lines.append(f"- helm repo: {cfg.helm_repo_name} ({cfg.helm_repo_url})")
    lines.append(f"- release: {cfg.helm_release} ({cfg.helm_chart})")
    lines.append("")

    lines.append("## Steps")
    for i, name in enumerate(ALL_STEPS, start=1):
        lines.append(f"{i}. {name}")

    return "\n".join(lines)


def _deploy_boutique(
    cfg: DeployConfig,
    base_dir: str,
    cancel_event: Optional[threading.Event],
) -> None:
    repo_path = manifests.clone_repo(cfg, base_dir)
    if cfg.tune_resources:
        changed = manifests.tune_manifests(repo_path, cfg)
        logger.info("리소스가 조정된 매니페스트: %d 개", len(changed))

    kube.apply_kustomize(f"./{manifests.KUSTOMIZE_DIR}/", cwd=repo_path)

    polling.wait_for_pods(
        cfg.app_namespace,
        cfg.expected_pods,
        timeout=cfg.pod_wait_timeout,
        interval=cfg.pod_wait_interval,
        cancel_event=cancel_event,
    )


def _run_step(
    name: str,
    cfg: DeployConfig,
    base_dir: str,
    cancel_event: Optional[threading.Event],
) -> Optional[str]:
    """단계 하나를 실행한다. access 단계만 출력 텍스트를 돌려준다."""
    if name == "tools":
        tools.ensure_tools(cfg)
    elif name == "project":
        gcp_project.ensure_project(cfg)
    elif name == "cluster":
        gke_cluster.ensure_cluster(cfg, cancel_event=cancel_event)
        gke_cluster.get_credentials(cfg)
    elif name == "boutique":
        _deploy_boutique(cfg, base_dir, cancel_event)
    elif name == "monitoring":
        monitoring.install_monitoring(cfg, cancel_event=cancel_event)
    elif name == "access":
        info = access.collect_access_info(cfg)
        return access.render_access_info(info, cfg.app_namespace)
    else:
        raise ValueError(f"알 수 없는 단계입니다: {name}")
    return None


def _section(lines: List[str], title: str, items: List[str]) -> None:
    lines.append(f"## {title}")
    if items:
        for s in items:
            lines.append(f"- {s}")
    else:
        lines.append("- (none)")
    lines.append("")


def apply_all(
    cfg: DeployConfig,
    only_steps: Optional[Iterable[str]] = None,
    base_dir: str = ".",
    cancel_event: Optional[threading.Event] = None,
) -> tuple[str, bool]:
    """
    단계별 배포 로직을 순서대로 호출한다. 한 단계라도 실패하면 거기서 멈춘다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_failures: 실패(또는 취소)된 단계가 있는지 여부
    """
    executed: List[str] = []
    skipped: List[str] = []
    failed: List[str] = []
    not_run: List[str] = []
    access_text: Optional[str] = None

    steps = _filter_steps(only_steps)
    logger.info("실행 대상 단계: %s", steps)

    for name in ALL_STEPS:
        if name not in steps:
            skipped.append(name)
            continue
        if failed:
            not_run.append(name)
            continue
        if cancel_event is not None and cancel_event.is_set():
            logger.warning("취소 요청으로 남은 단계를 실행하지 않습니다: %s", name)
            failed.append(f"{name} (cancelled)")
            continue

        logger.info("=== 단계 실행: %s ===", name)
        try:
            output = _run_step(name, cfg, base_dir, cancel_event)
        except PollCancelled:
            logger.warning("단계 실행이 취소되었습니다: %s", name)
            failed.append(f"{name} (cancelled)")
            continue
        except Exception:  # noqa: BLE001
            logger.exception("단계 실행 실패: %s", name)
            failed.append(name)
            continue

        if output is not None:
            access_text = output
        executed.append(name)

    lines: List[str] = []
    lines.append("# Deploy summary")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- cluster: {cfg.cluster_name} ({cfg.zone})")
    lines.append("")
    _section(lines, "Executed steps", executed)
    _section(lines, "Skipped steps", skipped)
    _section(lines, "Failed steps", failed)
    _section(lines, "Not run (stopped after failure)", not_run)

    if access_text:
        lines.append(access_text)

    summary = "\n".join(lines).rstrip()
    return summary, bool(failed)


def check_all(cfg: DeployConfig, show_all: bool = False) -> tuple[str, bool]:
    """
    실제 리소스 생성 없이 도구/프로젝트/클러스터 상태를 점검한다.

    Returns:
        summary: 사람이 읽기 좋은 텍스트 요약
        has_issues: 크리티컬 이슈가 있는지 여부
    """
    lines: List[str] = []
    critical: List[str] = []
    warnings: List[str] = []

    lines.append("# Deploy pre-check")
    lines.append(f"- project: {cfg.gcp_project_id}")
    lines.append(f"- zone: {cfg.zone}")
    lines.append("")

    # 1) 도구
    lines.append("## Tools")
    for r in tools.check_tools():
        if show_all:
            lines.append(f"- {r}")
        if "없음" in r:
            # 자동 설치가 켜져 있으면 배포 중 설치된다.
            (warnings if cfg.install_missing_tools else critical).append(r)
    lines.append("")

    # 2) 프로젝트 및 API
    lines.append("## Project & APIs")
    try:
        for r in gcp_project.check_project(cfg):
            if show_all:
                lines.append(f"- {r}")
            if "Project: 없음" in r or "확인 불가" in r or "조회 실패" in r:
                critical.append(r)
            elif "API: 비활성화" in r:
                # 클러스터 생성 시 enable 한다.
                warnings.append(r)
    except Exception as e:  # noqa: BLE001
        msg = f"Project/APIs: 체크 중 예외 발생: {e}"
        if show_all:
            lines.append(f"- {msg}")
        critical.append(msg)
    lines.append("")

    # 3) 클러스터
    lines.append("## GKE cluster")
    try:
        status = gke_cluster.check_cluster(cfg)
        if show_all:
            lines.append(f"- {status}")
        if "Cluster: 없음" in status or "Cluster: 알 수 없음" in status:
            # 배포 시 API enable 후 생성된다.
            warnings.append(status)
    except Exception as e:  # noqa: BLE001
        msg = f"Cluster: 체크 중 예외 발생: {e}"
        if show_all:
            lines.append(f"- {msg}")
        critical.append(msg)
    lines.append("")

    lines.append("## Summary")
    if critical:
        lines.append("- 상태: 크리티컬 이슈가 있습니다. 배포 전 반드시 해결해야 합니다.")
    elif warnings:
        lines.append("- 상태: 경고만 있습니다. 배포 시 일부 리소스가 새로 생성됩니다.")
    else:
        lines.append("- 상태: 주요 이슈 없음 (배포 가능 상태로 보입니다)")

    if show_all or critical:
        lines.append("")
        lines.append("### Critical issues")
        if critical:
            for i in critical:
                lines.append(f"- {i}")
        else:
            lines.append("- (none)")

    if show_all or warnings:
        lines.append("")
        lines.append("### Warnings")
        if warnings:
            for i in warnings:
                lines.append(f"- {i}")
        else:
            lines.append("- (none)")

    if not show_all:
        lines.append("")
        lines.append("자세한 상태를 보려면 `deploy-boutique check -a` 를 실행하세요.")

    return "\n".join(lines), bool(critical)


def destroy_all(
    cfg: DeployConfig,
    cancel_event: Optional[threading.Event] = None,
) -> tuple[str, bool]:
    """
    모니터링 릴리스를 지우고 클러스터를 삭제한다.

    Returns:
        summary, has_failures
    """
    lines: List[str] = ["# Destroy summary", f"- cluster: {cfg.cluster_name} ({cfg.zone})", ""]

    try:
        if not gke_cluster.cluster_exists(cfg):
            lines.append("- cluster: 없음 (삭제할 리소스가 없습니다)")
            return "\n".join(lines), False

        gke_cluster.get_credentials(cfg)
        try:
            removed = monitoring.uninstall_monitoring(cfg)
            lines.append(f"- helm release {cfg.helm_release}: {'삭제됨' if removed else '없음'}")
        except RuntimeError as e:
            # 클러스터와 함께 삭제되므로 경고만 남긴다.
            logger.warning("모니터링 릴리스 삭제 실패: %s", e)
            lines.append(f"- helm release {cfg.helm_release}: 삭제 실패 ({e})")

        gke_cluster.delete_cluster(cfg, cancel_event=cancel_event)
        lines.append("- cluster: 삭제됨")
    except Exception as e:  # noqa: BLE001
        logger.exception("삭제 중 오류 발생")
        lines.append(f"- 실패: {e}")
        return "\n".join(lines), True

    return "\n".join(lines), False
