"""Vault backup and restore.

Provides:
- Pydantic schemas for the versioned snapshot format
- Strict and lenient integrity verifiers
- VaultManager for export and atomic import
"""

from .integrity import (
    IntegrityResult,
    verify_subscription_list_integrity,
    verify_vault_integrity,
)
from .manager import VaultManager
from .schemas import VAULT_VERSION, VaultSnapshot, parse_snapshot

__all__ = [
    "VAULT_VERSION",
    "IntegrityResult",
    "VaultManager",
    "VaultSnapshot",
    "parse_snapshot",
    "verify_subscription_list_integrity",
    "verify_vault_integrity",
]
