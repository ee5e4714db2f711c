import pytest

from boutique_kit.config import DeployConfig
from boutique_kit import access


def test_render_access_info_with_values() -> None:
    info = access.AccessInfo(frontend_ip="34.1.1.1", grafana_ip="34.2.2.2", grafana_password="secret")

    text = access.render_access_info(info, "default")

    assert "URL: http://34.1.1.1" in text
    assert "URL: http://34.2.2.2" in text
    assert "User: admin" in text
    assert "Password: secret" in text
    assert 'sum(rate(container_cpu_usage_seconds_total{namespace="default"}[5m])) by (pod)' in text
    assert 'sum(container_memory_working_set_bytes{namespace="default"}) by (pod)' in text


def test_render_access_info_pending() -> None:
    text = access.render_access_info(access.AccessInfo(frontend_ip=None, grafana_ip=None))

    assert text.count("URL: Pending") == 2


def test_collect_access_info_uses_configured_names(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = []

    def fake_ip(name: str, namespace: str) -> str:
        seen.append((name, namespace))
        return f"ip-{name}"

    monkeypatch.setattr(access.kube, "get_service_external_ip", fake_ip)
    monkeypatch.setattr(access.kube, "get_secret_value", lambda name, ns, key: f"{ns}/{name}/{key}")

    cfg = DeployConfig(gcp_project_id="demo-project", monitoring_namespace="obs", helm_release="kps")
    info = access.collect_access_info(cfg)

    assert seen == [("frontend-external", "default"), ("kps-grafana", "obs")]
    assert info.grafana_password == "obs/kps-grafana/admin-password"
