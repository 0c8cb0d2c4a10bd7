"""Prometheus file-based service discovery for Alibaba Cloud ECS instances."""

__version__ = "0.1.0"
