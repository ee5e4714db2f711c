import signal
import sys
import threading
from typing import Optional

import click

from .config import load_env_files, DeployConfig
from .logging_utils import setup_logging, get_logger
from .orchestrator import ALL_STEPS, apply_all, plan_all, check_all, destroy_all
from . import access


logger = get_logger(__name__)

ENV_TEMPLATE_NAME = "env.infra.example"


@click.group()
@click.option(
    "-C",
    "--chdir",
    "chdir",
    type=click.Path(file_okay=False, dir_okay=True, exists=True),
    default=".",
    help="작업 디렉토리 (기본: 현재 디렉토리). .env 파일과 clone 위치의 기준",
)
@click.option(
    "-v",
    "--verbose",
    count=True,
    help="로그 레벨을 DEBUG로 올립니다. (-vv 는 google/urllib3 로그까지)",
)
@click.pass_context
def main(ctx: click.Context, chdir: str, verbose: int) -> None:
    """GKE 에 Online Boutique + Prometheus/Grafana 를 배포하는 CLI"""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["chdir"] = chdir
    ctx.obj["verbose"] = verbose


def _load_config_from_ctx(ctx: click.Context) -> DeployConfig:
    base_dir: str = ctx.obj["chdir"]
    load_env_files(base_dir)
    cfg = DeployConfig.from_env()
    logger.debug("Config loaded: %s", cfg)
    return cfg


def _load_config_or_exit(ctx: click.Context) -> DeployConfig:
    try:
        return _load_config_from_ctx(ctx)
    except ValueError as e:
        click.echo(f"[ERROR] 설정 로드 실패: {e}", err=True)
        sys.exit(1)


def _install_cancel_handler(cancel_event: threading.Event):  # noqa: ANN202
    """
    첫 Ctrl-C 는 cancel_event 만 set 하여 polling 을 멈추고,
    두 번째 Ctrl-C 는 기본 동작(KeyboardInterrupt)으로 돌린다.
    """

    def _handler(signum, frame):  # noqa: ANN001, ARG001
        if cancel_event.is_set():
            raise KeyboardInterrupt
        click.echo("\n취소 요청을 받았습니다. 현재 단계를 정리하는 중... (한 번 더 누르면 강제 종료)", err=True)
        cancel_event.set()

    return signal.signal(signal.SIGINT, _handler)


@main.command()
@click.pass_context
def plan(ctx: click.Context) -> None:
    """현재 설정(.env/.env.infra)과 실행 단계를 요약하여 출력"""
    cfg = _load_config_or_exit(ctx)
    click.echo(plan_all(cfg))


@main.command(name="deploy")
@click.option(
    "--only",
    "only",
    type=str,
    default="",
    help="쉼표로 구분된 단계 이름(" + ",".join(ALL_STEPS) + "). 기본은 전체 단계를 순서대로 실행합니다.",
)
@click.pass_context
def deploy(ctx: click.Context, only: str) -> None:
    """클러스터 생성부터 모니터링 설치까지 순서대로 배포"""
    cfg = _load_config_or_exit(ctx)

    only_list: Optional[list[str]] = None
    if only.strip():
        only_list = [p.strip() for p in only.split(",") if p.strip()]

        invalid = sorted({s for s in only_list if s not in ALL_STEPS})
        if invalid:
            click.echo(
                "[ERROR] 잘못된 단계 이름이 있습니다: "
                + ", ".join(invalid)
                + f"\n허용되는 단계: {', '.join(ALL_STEPS)}",
                err=True,
            )
            sys.exit(1)

    cancel_event = threading.Event()
    previous = _install_cancel_handler(cancel_event)
    try:
        summary, has_failures = apply_all(
            cfg,
            only_steps=only_list,
            base_dir=ctx.obj["chdir"],
            cancel_event=cancel_event,
        )
    finally:
        signal.signal(signal.SIGINT, previous)

    click.echo(summary)

    if cancel_event.is_set():
        sys.exit(130)
    # 한 단계라도 실패했다면 전체 명령은 실패(exit 1)로 간주
    if has_failures:
        sys.exit(1)


@main.command()
@click.pass_context
def info(ctx: click.Context) -> None:
    """이미 배포된 환경의 접속 정보(URL, Grafana 계정) 출력"""
    cfg = _load_config_or_exit(ctx)
    try:
        info_ = access.collect_access_info(cfg)
    except RuntimeError as e:
        click.echo(f"[ERROR] 접속 정보 조회 실패: {e}", err=True)
        sys.exit(1)
    click.echo(access.render_access_info(info_, cfg.app_namespace))


@main.command()
@click.option("--yes", is_flag=True, help="확인 프롬프트 없이 삭제합니다.")
@click.pass_context
def destroy(ctx: click.Context, yes: bool) -> None:
    """모니터링 릴리스와 GKE 클러스터 삭제"""
    cfg = _load_config_or_exit(ctx)
    if not yes:
        click.confirm(
            f"클러스터 '{cfg.cluster_name}' ({cfg.gcp_project_id}/{cfg.zone}) 를 삭제합니다. 계속할까요?",
            abort=True,
        )

    summary, has_failures = destroy_all(cfg)
    click.echo(summary)
    if has_failures:
        sys.exit(1)


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """
    현재 디렉토리에 env 템플릿(env.infra.example)을 복사하는 초기화.
    """
    import os
    from importlib import resources

    base_dir: str = ctx.obj["chdir"]
    target = os.path.join(base_dir, ENV_TEMPLATE_NAME)
    if os.path.exists(target):
        click.echo(f"{ENV_TEMPLATE_NAME} 이(가) 이미 존재하여 건너뜀")
        return

    template = resources.files("boutique_kit").joinpath("examples").joinpath(ENV_TEMPLATE_NAME)
    try:
        content = template.read_text(encoding="utf-8")
    except FileNotFoundError:
        click.echo(f"템플릿 {ENV_TEMPLATE_NAME} 을(를) 패키지에서 찾을 수 없습니다.", err=True)
        sys.exit(1)

    with open(target, "w", encoding="utf-8") as dst:
        dst.write(content)
    click.echo(f"{ENV_TEMPLATE_NAME} 템플릿을 생성했습니다. .env.infra 로 복사한 뒤 값을 채우세요.")


@main.command()
@click.option(
    "-a",
    "--all",
    "show_all",
    is_flag=True,
    help="모든 체크 항목의 상세 상태를 출력합니다. (기본은 이슈만 요약)",
)
@click.pass_context
def check(ctx: click.Context, show_all: bool) -> None:
    """
    배포 전에 도구/GCP 프로젝트/클러스터 상태를 점검한다.
    (실제 리소스 생성/변경은 하지 않는다)
    """
    cfg = _load_config_or_exit(ctx)

    try:
        report, has_issues = check_all(cfg, show_all=show_all)
    except Exception as e:  # noqa: BLE001
        logger.exception("사전 체크 중 오류 발생")
        click.echo(f"[ERROR] 체크 실패: {e}", err=True)
        sys.exit(1)

    click.echo(report)

    # 크리티컬 이슈가 있으면 exit 1 로 종료하여 CI 등에서 감지 가능하게 한다.
    if has_issues:
        sys.exit(1)
