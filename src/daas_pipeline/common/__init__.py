"""Shared infrastructure for the DaaS pipeline (metrics, signals)."""
