"""Prometheus metrics for turn retry orchestration."""
