from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .models import Quote


@runtime_checkable
class PriceSource(Protocol):
    """Supplies current prices to the trade engine and account view.

    Refresh cadence and caching belong to the implementation; consumers only
    read. A quote that is missing, zero, or times out is treated as
    unavailable.
    """

    def is_listed(self, symbol: str) -> bool:
        ...

    async def get_quote(self, symbol: str) -> Optional[Quote]:
        ...
