# MIT License
# Copyright (c) 2025 Hashborn

"""
ledgersync

Durable, rollback-safe ledger state for a block-by-block chain follower.
"""

__version__ = "0.1.0"
