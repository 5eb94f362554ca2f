"""Observability for the achievement engine (Prometheus metrics)"""
