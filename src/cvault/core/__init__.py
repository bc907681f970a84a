"""
cvault Core Module

Core functionality for the compounding vault including:
- Ledger (serialization, block clock, rollback)
- Configuration and structured logging
- Error hierarchy and metrics
- Token and access-control contracts
- Vault accounting engine
"""

__all__ = []
