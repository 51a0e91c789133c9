# MIT License
# Copyright (c) 2025 Hashborn

"""
Observability Module

Provides metrics for ledger state application and snapshotting.
"""

from .metrics import metrics_registry, update_ledger_metrics

__all__ = ['metrics_registry', 'update_ledger_metrics']
