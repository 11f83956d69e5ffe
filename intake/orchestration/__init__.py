"""Orchestration: event dispatch, reconciliation, polling and background work."""
