"""Kubernetes history building blocks: payload extraction, event counting, timelines, filters and configuration."""

__version__ = "0.1.0"

__all__ = ["config", "eventcount", "filters", "kubeextractor", "timeline"]