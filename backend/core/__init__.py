"""Core logic for indicator computation, signal classification and outcomes.

This package contains pure business logic with no I/O dependencies
(no database or network access). The live passes in ``app/`` inject
price feeds, stores and notifiers through ``core.protocols``.
"""
