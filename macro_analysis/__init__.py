"""
Macro analysis engine.

Turns a food description, photo, barcode or recipe into a single
nutrition record by consulting several analysis backends in order.

Structure:
- domain/: models, aggregation and backend ports
- application/: fallback strategy, orchestrator, observable state, journal
- infrastructure/: analyzers, cache, store, configuration, registry
"""

__version__ = "0.1.0"
