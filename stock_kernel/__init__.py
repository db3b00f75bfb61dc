"""
Stock Kernel

A stock ledger and FIFO allocation engine with:
- Dated, append-only stock lots consumed oldest-first
- Immutable per-lot adjustment records
- Derived on-hand totals recomputed inside every transaction
- All-or-nothing stock operations under concurrent writers
"""

__version__ = "0.1.0"
