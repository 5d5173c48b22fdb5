"""
Azure DevOps build and release metrics exporter.

Scrapes builds, releases, release definitions, environments, approvals and
artifacts from Azure DevOps and republishes them as Prometheus gauges.
"""

__version__ = "1.0.0"
