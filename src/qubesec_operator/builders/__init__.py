"""Builders for typed reconciliation requests."""
