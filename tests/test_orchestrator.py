import threading

import pytest

from boutique_kit.config import DeployConfig
from boutique_kit import orchestrator
from boutique_kit.polling import PollCancelled


def _minimal_cfg() -> DeployConfig:
    return DeployConfig(gcp_project_id="test-project")


@pytest.fixture
def steps(monkeypatch: pytest.MonkeyPatch) -> list:
    called: list = []
    monkeypatch.setattr(orchestrator.tools, "ensure_tools", lambda cfg: called.append("tools"))
    monkeypatch.setattr(orchestrator.gcp_project, "ensure_project", lambda cfg: called.append("project"))
    monkeypatch.setattr(
        orchestrator.gke_cluster, "ensure_cluster", lambda cfg, cancel_event=None: called.append("cluster")
    )
    monkeypatch.setattr(orchestrator.gke_cluster, "get_credentials", lambda cfg: called.append("credentials"))
    monkeypatch.setattr(
        orchestrator.manifests, "clone_repo", lambda cfg, base_dir: called.append("clone") or "repo"
    )
    monkeypatch.setattr(
        orchestrator.manifests, "tune_manifests", lambda path, cfg: called.append("tune") or []
    )
    monkeypatch.setattr(
        orchestrator.kube, "apply_kustomize", lambda path, cwd=None: called.append(("apply", path, cwd))
    )
    monkeypatch.setattr(
        orchestrator.polling, "wait_for_pods", lambda ns, expected, **kw: called.append(("wait", ns, expected))
    )
    monkeypatch.setattr(
        orchestrator.monitoring,
        "install_monitoring",
        lambda cfg, cancel_event=None: called.append("monitoring"),
    )
    monkeypatch.setattr(
        orchestrator.access,
        "collect_access_info",
        lambda cfg: orchestrator.access.AccessInfo(frontend_ip="1.2.3.4", grafana_ip=None),
    )
    return called


def test_apply_all_runs_every_step_in_order(steps: list) -> None:
    summary, has_failures = orchestrator.apply_all(_minimal_cfg())

    assert not has_failures
    assert steps == [
        "tools",
        "project",
        "cluster",
        "credentials",
        "clone",
        "tune",
        ("apply", "./kustomize/", "repo"),
        ("wait", "default", 12),
        "monitoring",
    ]
    assert "## Executed steps" in summary
    assert "URL: http://1.2.3.4" in summary


def test_apply_all_stops_at_first_failure(monkeypatch: pytest.MonkeyPatch, steps: list) -> None:
    def failing_project(_cfg: DeployConfig) -> None:
        raise RuntimeError("project missing")

    monkeypatch.setattr(orchestrator.gcp_project, "ensure_project", failing_project)

    summary, has_failures = orchestrator.apply_all(_minimal_cfg())

    assert has_failures
    assert steps == ["tools"]
    failed = summary.split("## Failed steps")[1].split("##")[0]
    assert "- project" in failed
    not_run = summary.split("## Not run (stopped after failure)")[1]
    for name in ("cluster", "boutique", "monitoring", "access"):
        assert f"- {name}" in not_run


def test_apply_all_only_selected_steps(steps: list) -> None:
    summary, has_failures = orchestrator.apply_all(_minimal_cfg(), only_steps=["monitoring"])

    assert not has_failures
    assert steps == ["monitoring"]
    skipped = summary.split("## Skipped steps")[1].split("##")[0]
    assert "- tools" in skipped
    assert "- access" in skipped


def test_apply_all_skips_tuning_when_disabled(steps: list) -> None:
    cfg = _minimal_cfg()
    cfg.tune_resources = False

    orchestrator.apply_all(cfg, only_steps=["boutique"])

    assert "tune" not in steps


def test_apply_all_marks_cancelled_step(monkeypatch: pytest.MonkeyPatch, steps: list) -> None:
    def cancelled(ns, expected, **kw):  # noqa: ANN001, ANN003
        raise PollCancelled("cancelled")

    monkeypatch.setattr(orchestrator.polling, "wait_for_pods", cancelled)

    summary, has_failures = orchestrator.apply_all(_minimal_cfg())

    assert has_failures
    assert "- boutique (cancelled)" in summary
    assert "monitoring" not in steps


def test_apply_all_stops_when_cancelled_between_steps(monkeypatch: pytest.MonkeyPatch, steps: list) -> None:
    cancel_event = threading.Event()

    def project_then_ctrl_c(_cfg: DeployConfig) -> None:
        steps.append("project")
        cancel_event.set()

    monkeypatch.setattr(orchestrator.gcp_project, "ensure_project", project_then_ctrl_c)

    summary, has_failures = orchestrator.apply_all(_minimal_cfg(), cancel_event=cancel_event)

    assert has_failures
    assert steps == ["tools", "project"]
    failed = summary.split("## Failed steps")[1].split("##")[0]
    assert "- cluster (cancelled)" in failed
    not_run = summary.split("## Not run (stopped after failure)")[1]
    for name in ("boutique", "monitoring", "access"):
        assert f"- {name}" in not_run


def test_apply_all_runs_nothing_when_already_cancelled(steps: list) -> None:
    cancel_event = threading.Event()
    cancel_event.set()

    summary, has_failures = orchestrator.apply_all(_minimal_cfg(), cancel_event=cancel_event)

    assert has_failures
    assert steps == []
    assert "- tools (cancelled)" in summary


def test_plan_all_has_no_side_effects(steps: list) -> None:
    report = orchestrator.plan_all(_minimal_cfg())

    assert steps == []
    assert "- project: test-project" in report
    assert "1. tools" in report
    assert "6. access" in report


def test_check_all_flags_missing_project(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orchestrator.tools, "check_tools", lambda: ["Tool: 설치됨 (gcloud)"])
    monkeypatch.setattr(
        orchestrator.gcp_project,
        "check_project",
        lambda cfg: ["Project: 없음 (콘솔에서 생성 필요) (test-project)"],
    )
    monkeypatch.setattr(orchestrator.gke_cluster, "check_cluster", lambda cfg: "Cluster: 없음 (배포 시 생성됨) (x)")

    report, has_issues = orchestrator.check_all(_minimal_cfg())

    assert has_issues
    assert "### Critical issues" in report


def test_check_all_missing_cluster_is_only_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orchestrator.tools, "check_tools", lambda: ["Tool: 설치됨 (gcloud)"])
    monkeypatch.setattr(
        orchestrator.gcp_project,
        "check_project",
        lambda cfg: ["Project: 존재함 (test-project)", "API: 활성화됨 (container.googleapis.com)"],
    )
    monkeypatch.setattr(orchestrator.gke_cluster, "check_cluster", lambda cfg: "Cluster: 없음 (배포 시 생성됨) (x)")

    report, has_issues = orchestrator.check_all(_minimal_cfg(), show_all=True)

    assert not has_issues
    assert "### Warnings" in report
    assert "Cluster: 없음" in report


def test_check_all_unknown_cluster_with_api_disabled_is_warning(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orchestrator.tools, "check_tools", lambda: ["Tool: 설치됨 (gcloud)"])
    monkeypatch.setattr(
        orchestrator.gcp_project,
        "check_project",
        lambda cfg: ["Project: 존재함 (test-project)", "API: 비활성화 (container.googleapis.com)"],
    )
    monkeypatch.setattr(
        orchestrator.gke_cluster,
        "check_cluster",
        lambda cfg: "Cluster: 알 수 없음 (GKE API 비활성화 또는 권한 없음) (boutique-cluster)",
    )

    report, has_issues = orchestrator.check_all(_minimal_cfg())

    assert not has_issues
    assert "### Critical issues" not in report
    assert "Cluster: 알 수 없음" in report


def test_destroy_all_when_cluster_missing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(orchestrator.gke_cluster, "cluster_exists", lambda cfg: False)

    summary, has_failures = orchestrator.destroy_all(_minimal_cfg())

    assert not has_failures
    assert "삭제할 리소스가 없습니다" in summary


def test_destroy_all_uninstalls_then_deletes(monkeypatch: pytest.MonkeyPatch) -> None:
    order: list = []
    monkeypatch.setattr(orchestrator.gke_cluster, "cluster_exists", lambda cfg: True)
    monkeypatch.setattr(orchestrator.gke_cluster, "get_credentials", lambda cfg: order.append("credentials"))
    monkeypatch.setattr(orchestrator.monitoring, "uninstall_monitoring", lambda cfg: order.append("uninstall") or True)
    monkeypatch.setattr(
        orchestrator.gke_cluster, "delete_cluster", lambda cfg, cancel_event=None: order.append("delete")
    )

    summary, has_failures = orchestrator.destroy_all(_minimal_cfg())

    assert not has_failures
    assert order == ["credentials", "uninstall", "delete"]
