"""Credits domain - Balances, debits and the credit history ledger"""

from .router import router

__all__ = ["router"]
