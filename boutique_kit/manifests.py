"""
manifests
---------

Online Boutique 저장소를 clone 하고,
작은 노드에서도 스케줄링되도록 kustomize/base 매니페스트의 CPU/메모리 값을 낮추는 모듈.

YAML 을 파싱하지 않고 정규식 치환만 한다. (주석/포맷을 그대로 보존)
"""

from __future__ import annotations

import os
import re
from glob import glob
from typing import List, Pattern

from .config import DeployConfig
from .logging_utils import get_logger
from .subprocess_utils import run_command


logger = get_logger(__name__)


KUSTOMIZE_DIR = "kustomize"
BASE_DIR = os.path.join(KUSTOMIZE_DIR, "base")
LOADGENERATOR_FILE = "loadgenerator.yaml"
BACKUP_SUFFIX = ".bak"

# loadgenerator 전용 치환 (순서대로, 모든 occurrence)
LOADGENERATOR_REPLACEMENTS = [
    ("cpu: 300m", "cpu: 50m"),
    ("memory: 256Mi", "memory: 64Mi"),
    ("cpu: 500m", "cpu: 100m"),
    ("memory: 512Mi", "memory: 128Mi"),
]

_REQUESTS_RE = re.compile(r"requests:")
_LIMITS_RE = re.compile(r"limits:")
_CPU_RE = re.compile(r"cpu:")
_MILLICPU_RE = re.compile(r"cpu: [0-9]*m")


def clone_repo(cfg: DeployConfig, base_dir: str = ".") -> str:
    """
    저장소를 clone 한다. 디렉토리가 이미 있으면 건너뛴다.

    Returns:
        저장소 디렉토리 경로
    """
    repo_path = os.path.join(base_dir, cfg.repo_dir)
    if os.path.isdir(repo_path):
        logger.warning("디렉토리 '%s' 가 이미 존재합니다. clone 을 건너뜁니다.", repo_path)
        return repo_path

    logger.info("저장소 clone: %s", cfg.repo_url)
    run_command(
        ["git", "clone", cfg.repo_url, cfg.repo_dir],
        cwd=base_dir,
        stream_output=True,
        spinner_message="git clone",
    )
    logger.info("저장소 clone 완료: %s", repo_path)
    return repo_path


def tune_loadgenerator(text: str) -> str:
    for old, new in LOADGENERATOR_REPLACEMENTS:
        text = text.replace(old, new)
    return text


def _substitute_in_ranges(
    lines: List[str],
    start: Pattern[str],
    end: Pattern[str],
    replacement: str,
) -> List[str]:
    """
    sed 의 `/start/,/end/ s/cpu: [0-9]*m/<replacement>/` 와 같은 동작.

    - start 와 매치되는 줄에서 범위가 시작된다.
    - end 는 시작 줄 다음 줄부터 검사하고, 매치된 줄까지 범위에 포함된다.
    - 범위 안의 각 줄에서 첫 번째 매치만 치환한다.
    - end 를 만나지 못하면 파일 끝까지 범위가 이어진다.
    """
    out: List[str] = []
    in_range = False
    for line in lines:
        if not in_range:
            if start.search(line):
                in_range = True
                out.append(_MILLICPU_RE.sub(lambda _m: replacement, line, count=1))
            else:
                out.append(line)
            continue

        out.append(_MILLICPU_RE.sub(lambda _m: replacement, line, count=1))
        if end.search(line):
            in_range = False
    return out


def tune_requests_limits(text: str, cpu_request: str = "50m", cpu_limit: str = "100m") -> str:
    lines = text.splitlines(keepends=True)
    lines = _substitute_in_ranges(lines, _REQUESTS_RE, _CPU_RE, f"cpu: {cpu_request}")
    lines = _substitute_in_ranges(lines, _LIMITS_RE, _CPU_RE, f"cpu: {cpu_limit}")
    return "".join(lines)


def tune_manifest_text(filename: str, text: str, cfg: DeployConfig) -> str:
    if os.path.basename(filename) == LOADGENERATOR_FILE:
        text = tune_loadgenerator(text)
    return tune_requests_limits(text, cfg.cpu_request, cfg.cpu_limit)


def tune_manifests(repo_path: str, cfg: DeployConfig) -> List[str]:
    """
    kustomize/base/*.yaml 의 CPU/메모리 값을 조정한다.

    변경된 파일은 최초 1회만 원본을 `<file>.bak` 로 남긴다.

    Returns:
        변경된 파일 경로 목록
    """
    base = os.path.join(repo_path, BASE_DIR)
    files = sorted(glob(os.path.join(base, "*.yaml")))
    if not files:
        raise RuntimeError(f"매니페스트를 찾을 수 없습니다: {base}/*.yaml")

    logger.info(
        "리소스 조정: %d 개 파일 (cpu request=%s, limit=%s)",
        len(files),
        cfg.cpu_request,
        cfg.cpu_limit,
    )

    changed: List[str] = []
    for path in files:
        with open(path, "r", encoding="utf-8") as f:
            original = f.read()

        tuned = tune_manifest_text(path, original, cfg)
        if tuned == original:
            continue

        backup = path + BACKUP_SUFFIX
        if not os.path.exists(backup):
            with open(backup, "w", encoding="utf-8") as f:
                f.write(original)

        with open(path, "w", encoding="utf-8") as f:
            f.write(tuned)
        logger.debug("리소스 조정됨: %s", path)
        changed.append(path)

    return changed
