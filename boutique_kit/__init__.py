"""
boutique_kit
------------

GKE 위에 Online Boutique 데모(마이크로서비스)와
Prometheus + Grafana 모니터링 스택을 한 번에 배포하는 CLI 패키지.
gcloud / kubectl / helm / git 을 순서대로 호출하는 오케스트레이션 래퍼이다.
"""

__version__ = "0.1.0"

__all__ = [
    "config",
    "orchestrator",
]
