"""
Ledger Engine - tenant-scoped double-entry accounting core
"""
__version__ = "1.0.0"
