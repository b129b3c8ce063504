"""Selectors for the signing kernel (read side)."""

from signing_kernel.selectors.contract_selector import ContractSelector

__all__ = [
    "ContractSelector",
]
