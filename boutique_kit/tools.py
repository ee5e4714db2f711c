"""
tools
-----

배포에 필요한 CLI 도구(gcloud, kubectl, helm, git) 설치 여부를 확인하고,
INSTALL_MISSING_TOOLS=true 인 경우 플랫폼별 방법으로 설치하는 모듈.
"""

from __future__ import annotations

import sys
from typing import Callable, Dict, List

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import command_exists, run_command


logger = get_logger(__name__)


REQUIRED_TOOLS: List[str] = ["gcloud", "kubectl", "helm", "git"]

_KUBECTL_URL = (
    "https://dl.k8s.io/release/$(curl -L -s https://dl.k8s.io/release/stable.txt)"
    "/bin/{os}/amd64/kubectl"
)
_HELM_INSTALL_SCRIPT = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
_GCLOUD_INSTALL_SCRIPT = "https://sdk.cloud.google.com"


def _platform() -> str:
    if sys.platform == "darwin":
        return "darwin"
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _shell(script: str) -> None:
    # curl | bash 파이프라인은 셸을 거쳐야 한다.
    run_command(["bash", "-c", script], stream_output=True, timeout=1800)


def _install_gcloud(platform: str) -> None:
    if platform == "darwin":
        if not command_exists("brew"):
            raise RuntimeError("Homebrew 가 설치되어 있지 않습니다. 먼저 설치하세요: https://brew.sh")
        run_command(["brew", "install", "--cask", "google-cloud-sdk"], stream_output=True, timeout=1800)
    elif platform == "linux":
        _shell(f"curl -sSL {_GCLOUD_INSTALL_SCRIPT} | bash -s -- --disable-prompts")
    else:
        raise RuntimeError(
            "자동 설치를 지원하지 않는 운영체제입니다. gcloud 를 직접 설치하세요: "
            "https://cloud.google.com/sdk/docs/install"
        )


def _install_kubectl(platform: str) -> None:
    if platform == "darwin" and command_exists("brew"):
        run_command(["brew", "install", "kubectl"], stream_output=True, timeout=1800)
    elif platform in {"darwin", "linux"}:
        url = _KUBECTL_URL.format(os=platform)
        _shell(f'curl -LO "{url}" && chmod +x kubectl && sudo mv kubectl /usr/local/bin/')
    else:
        raise RuntimeError("자동 설치를 지원하지 않는 운영체제입니다. kubectl 을 직접 설치하세요.")


def _install_helm(platform: str) -> None:
    if platform == "darwin" and command_exists("brew"):
        run_command(["brew", "install", "helm"], stream_output=True, timeout=1800)
    elif platform in {"darwin", "linux"}:
        _shell(f"curl -fsSL {_HELM_INSTALL_SCRIPT} | bash")
    else:
        raise RuntimeError("자동 설치를 지원하지 않는 운영체제입니다. helm 을 직접 설치하세요.")


def _install_git(platform: str) -> None:
    if platform == "darwin":
        if not command_exists("brew"):
            raise RuntimeError("Homebrew 가 설치되어 있지 않습니다. 먼저 설치하세요: https://brew.sh")
        run_command(["brew", "install", "git"], stream_output=True, timeout=1800)
    elif platform == "linux":
        if command_exists("apt-get"):
            _shell("sudo apt-get update && sudo apt-get install -y git")
        elif command_exists("yum"):
            run_command(["sudo", "yum", "install", "-y", "git"], stream_output=True, timeout=1800)
        else:
            raise RuntimeError("패키지 관리자를 찾지 못했습니다. git 을 직접 설치하세요.")
    else:
        raise RuntimeError("자동 설치를 지원하지 않는 운영체제입니다. git 을 직접 설치하세요.")


INSTALLERS: Dict[str, Callable[[str], None]] = {
    "gcloud": _install_gcloud,
    "kubectl": _install_kubectl,
    "helm": _install_helm,
    "git": _install_git,
}


def missing_tools() -> List[str]:
    return [t for t in REQUIRED_TOOLS if not command_exists(t)]


def ensure_tools(cfg: DeployConfig) -> None:
    """
    필수 도구가 PATH 에 있는지 확인한다.

    없는 도구가 있을 때 INSTALL_MISSING_TOOLS=false 면 바로 실패하고,
    true 면 설치를 시도한 뒤 다시 확인한다.
    """
    for tool in REQUIRED_TOOLS:
        if command_exists(tool):
            logger.info("%s 확인됨", tool)

    missing = missing_tools()
    if not missing:
        return

    if not cfg.install_missing_tools:
        raise RuntimeError(
            "필요한 도구가 설치되어 있지 않습니다: "
            + ", ".join(missing)
            + " (INSTALL_MISSING_TOOLS=true 로 자동 설치할 수 있습니다)"
        )

    platform = _platform()
    for tool in missing:
        logger.warning("%s 이(가) 없어 설치를 시도합니다. (platform=%s)", tool, platform)
        INSTALLERS[tool](platform)
        logger.info("%s 설치 완료", tool)

    still_missing = missing_tools()
    if still_missing:
        # gcloud 설치 스크립트는 새 셸에서만 PATH 에 반영되는 경우가 있다.
        raise RuntimeError(
            "설치 후에도 도구를 찾을 수 없습니다: "
            + ", ".join(still_missing)
            + " (새 터미널에서 다시 실행해 보세요)"
        )


def check_tools() -> List[str]:
    """
    도구 설치 여부만 확인한다. 설치는 하지 않는다.
    """
    results: List[str] = []
    for tool in REQUIRED_TOOLS:
        if command_exists(tool):
            results.append(f"Tool: 설치됨 ({tool})")
        else:
            results.append(f"Tool: 없음 (설치 필요) ({tool})")
    return results
