"""Prometheus file_sd document output."""
