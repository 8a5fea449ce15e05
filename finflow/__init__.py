"""
FinFlow - Source Package

A personal finance dashboard back end that tracks monthly income and
expenses, investment contributions and prioritized savings buckets.

DESIGN PRINCIPLES:
1. Financial state is derived, never stored
2. The engine is total: bad input reads as zero, it never fails
3. Every mutation intent is auditable
4. Storage layer is swappable
"""

__version__ = "3.4.0"
__author__ = "FinFlow Team"
