"""
gcp_project
-----------

GCP 프로젝트 존재 여부 확인, 활성 프로젝트 설정,
GKE(container.googleapis.com) API enable 을 담당하는 모듈.
"""

from __future__ import annotations

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


CONTAINER_API = "container.googleapis.com"


def ensure_project(cfg: DeployConfig) -> None:
    """
    프로젝트가 존재하는지 확인하고 gcloud 활성 프로젝트로 설정한다.
    프로젝트 생성은 하지 않는다. (콘솔에서 직접 생성)
    """
    project = cfg.gcp_project_id
    logger.info("GCP 프로젝트 확인: %s", project)

    try:
        run_command(["gcloud", "projects", "describe", project, "--quiet"])
    except CommandError as e:
        if e.returncode is None:
            raise
        raise RuntimeError(
            f"GCP 프로젝트 '{project}' 가 존재하지 않거나 접근할 수 없습니다. 콘솔에서 먼저 생성하세요."
        ) from e
    logger.info("GCP 프로젝트 '%s' 확인 완료", project)

    run_command(["gcloud", "config", "set", "project", project])
    logger.info("활성 프로젝트를 설정했습니다: %s", project)


def enable_container_api(cfg: DeployConfig) -> None:
    logger.info("GKE 서비스 활성화: %s", CONTAINER_API)
    run_command(
        [
            "gcloud",
            "services",
            "enable",
            CONTAINER_API,
            f"--project={cfg.gcp_project_id}",
            "--quiet",
        ],
        spinner_message=f"{CONTAINER_API} 활성화 중",
    )


def check_project(cfg: DeployConfig) -> list[str]:
    """
    프로젝트 존재 여부와 GKE API 활성화 여부를 확인한다.
    실제 enable 은 수행하지 않는다.
    """
    results: list[str] = []
    project = cfg.gcp_project_id

    try:
        run_command(["gcloud", "projects", "describe", project, "--quiet"])
        results.append(f"Project: 존재함 ({project})")
    except CommandError as e:
        if e.returncode is None:
            results.append("Project: gcloud 명령을 찾을 수 없어 확인 불가")
            return results
        if "NOT_FOUND" in e.stderr or "not found" in e.stderr.lower():
            results.append(f"Project: 없음 (콘솔에서 생성 필요) ({project})")
        else:
            results.append(
                f"Project: 조회 실패 (gcloud projects describe, exit={e.returncode})"
            )
        return results

    cmd = [
        "gcloud",
        "services",
        "list",
        "--enabled",
        f"--project={project}",
        f"--filter=name:{CONTAINER_API}",
        "--format=value(config.name)",
        "--quiet",
    ]
    try:
        proc = run_command(cmd)
    except CommandError as e:
        results.append(f"API: 상태 조회 실패 ({CONTAINER_API}): {e}")
        return results

    if proc.stdout.strip():
        results.append(f"API: 활성화됨 ({CONTAINER_API})")
    else:
        results.append(f"API: 비활성화 (enable 필요) ({CONTAINER_API})")
    return results
