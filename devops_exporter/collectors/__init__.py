"""
Collectors - one per published resource family group

Usage:
    from devops_exporter.collectors import build_collectors

    collectors = build_collectors(client, settings, health)
    for collector in collectors:
        collector.setup(registry)
"""

from devops_exporter.collectors.ado_rest_client import AzureDevOpsFetchError, AzureDevOpsRESTClient
from devops_exporter.collectors.base import BaseCollector
from devops_exporter.collectors.latest_build import LatestBuildCollector
from devops_exporter.collectors.release import ReleaseCollector
from devops_exporter.core import CollectorHealth, ExporterConfig


def build_collectors(
    client: AzureDevOpsRESTClient, settings: ExporterConfig, health: CollectorHealth | None = None
) -> list[BaseCollector]:
    """Instantiate every collector the exporter runs."""
    return [
        LatestBuildCollector(client, settings, health),
        ReleaseCollector(client, settings, health),
    ]


__all__ = [
    "AzureDevOpsFetchError",
    "AzureDevOpsRESTClient",
    "BaseCollector",
    "LatestBuildCollector",
    "ReleaseCollector",
    "build_collectors",
]
