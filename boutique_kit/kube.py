"""
kube
----

kubectl 래퍼. 매니페스트 적용, 네임스페이스 생성, 파드/서비스/시크릿 조회를 담당한다.
조회 계열은 `-o json` 출력을 파싱한다.
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict, List, Optional

from .logging_utils import get_logger
from .subprocess_utils import CommandError, run_command


logger = get_logger(__name__)


def _kubectl_json(args: List[str]) -> Dict[str, Any]:
    result = run_command(["kubectl", *args, "-o", "json"], show_progress=False)
    try:
        return json.loads(result.stdout or "{}")
    except json.JSONDecodeError as e:
        raise RuntimeError(f"kubectl 출력(JSON)을 해석할 수 없습니다: kubectl {' '.join(args)}") from e


def apply_kustomize(path: str, *, cwd: Optional[str] = None) -> None:
    """`kubectl apply -k <path>`"""
    try:
        run_command(
            ["kubectl", "apply", "-k", path],
            cwd=cwd,
            stream_output=True,
            spinner_message="매니페스트 적용 중",
        )
    except CommandError as e:
        raise RuntimeError(f"매니페스트 적용에 실패했습니다 (kubectl apply -k {path}): {e}") from e


def ensure_namespace(name: str) -> None:
    """
    네임스페이스가 없으면 만들고, 있으면 그대로 둔다.
    `kubectl create ns --dry-run=client -o yaml | kubectl apply -f -` 와 동일하다.
    """
    rendered = run_command(
        ["kubectl", "create", "namespace", name, "--dry-run=client", "-o", "yaml"],
        show_progress=False,
    )
    run_command(["kubectl", "apply", "-f", "-"], input_text=rendered.stdout)
    logger.info("네임스페이스 준비 완료: %s", name)


def list_pods(namespace: str) -> List[Dict[str, Any]]:
    data = _kubectl_json(["get", "pods", "--namespace", namespace])
    return list(data.get("items") or [])


def count_running_pods(namespace: str) -> int:
    """
    phase 가 Running 이고 종료 중(deletionTimestamp)이 아닌 파드 수.
    """
    count = 0
    for pod in list_pods(namespace):
        if pod.get("metadata", {}).get("deletionTimestamp"):
            continue
        if pod.get("status", {}).get("phase") == "Running":
            count += 1
    return count


def patch_service_type(name: str, namespace: str, service_type: str = "LoadBalancer") -> None:
    patch = json.dumps({"spec": {"type": service_type}})
    run_command(
        ["kubectl", "patch", "service", name, "--namespace", namespace, "-p", patch]
    )
    logger.info("서비스 타입 변경: %s/%s -> %s", namespace, name, service_type)


def get_service_external_ip(name: str, namespace: str) -> Optional[str]:
    """
    LoadBalancer 외부 주소. 아직 할당 전이거나 서비스가 없으면 None.
    """
    try:
        svc = _kubectl_json(["get", "service", name, "--namespace", namespace])
    except CommandError as e:
        logger.debug("서비스 조회 실패 %s/%s: %s", namespace, name, e)
        return None

    ingress = svc.get("status", {}).get("loadBalancer", {}).get("ingress") or []
    if not ingress:
        return None
    first = ingress[0]
    return first.get("ip") or first.get("hostname") or None


def get_secret_value(name: str, namespace: str, key: str) -> Optional[str]:
    """
    Secret 의 data[key] 를 base64 디코딩하여 돌려준다. 없으면 None.
    """
    try:
        secret = _kubectl_json(["get", "secret", name, "--namespace", namespace])
    except CommandError as e:
        logger.debug("시크릿 조회 실패 %s/%s: %s", namespace, name, e)
        return None

    raw = (secret.get("data") or {}).get(key)
    if not raw:
        return None
    try:
        return base64.b64decode(raw).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("시크릿 값을 디코딩할 수 없습니다: %s/%s[%s]", namespace, name, key)
        return None
