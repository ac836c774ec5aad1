"""Hierarchical status reconciliation."""

from __future__ import annotations

from .sweep import DEFAULT_GRACE_WINDOW, StatusChange, StatusReconciler, SweepReport

__all__ = ["DEFAULT_GRACE_WINDOW", "StatusChange", "StatusReconciler", "SweepReport"]
