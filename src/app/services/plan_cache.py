"""Plan Cache Interface

The plan catalog is read-mostly; active plans may be cached and must be
invalidated whenever an admin creates or updates a plan.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class PlanCache(ABC):
    """
    Cache of the active plan listing

    Entries are JSON-compatible plan records (never ORM instances bound to a
    session), so a shared backend can serve every API process.
    """

    @abstractmethod
    async def get_active_plans(self) -> Optional[List[Dict[str, Any]]]:
        """Cached active plans, or None on a miss"""
        pass

    @abstractmethod
    async def set_active_plans(self, plans: List[Dict[str, Any]]) -> None:
        pass

    @abstractmethod
    async def invalidate(self) -> None:
        pass

    async def close(self) -> None:
        """Release backend connections"""
        pass
