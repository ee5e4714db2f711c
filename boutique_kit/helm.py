"""
helm
----

Helm 리포지토리 등록과 차트 설치/삭제를 담당하는 모듈.
"""

from __future__ import annotations

import json

from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


def add_repo(name: str, url: str) -> None:
    # --force-update: 이미 등록된 리포여도 실패하지 않는다.
    run_command(["helm", "repo", "add", name, url, "--force-update"])
    logger.info("Helm 리포지토리 등록: %s (%s)", name, url)


def update_repos() -> None:
    run_command(["helm", "repo", "update"], spinner_message="helm repo update")


def is_release_installed(release: str, namespace: str) -> bool:
    result = run_command(
        ["helm", "list", "--namespace", namespace, "--all", "-o", "json"],
        show_progress=False,
    )
    try:
        releases = json.loads(result.stdout or "[]")
    except json.JSONDecodeError as e:
        raise RuntimeError("helm list 출력(JSON)을 해석할 수 없습니다.") from e
    return any(r.get("name") == release for r in releases or [])


def install_chart(release: str, chart: str, namespace: str, *, timeout: float = 1200.0) -> None:
    logger.info("Helm 차트 설치: %s (%s) -> namespace=%s", release, chart, namespace)
    try:
        run_command(
            ["helm", "install", release, chart, "--namespace", namespace],
            stream_output=True,
            timeout=timeout,
            spinner_message=f"{chart} 설치 중",
        )
    except CommandError as e:
        raise RuntimeError(f"Helm 차트 설치에 실패했습니다 ({release}): {e}") from e


def uninstall_release(release: str, namespace: str) -> bool:
    """
    릴리스를 삭제한다. 설치되어 있지 않으면 False.
    """
    if not is_release_installed(release, namespace):
        logger.warning("Helm 릴리스가 설치되어 있지 않습니다: %s (namespace=%s)", release, namespace)
        return False
    run_command(["helm", "uninstall", release, "--namespace", namespace], stream_output=True)
    logger.info("Helm 릴리스 삭제: %s", release)
    return True
