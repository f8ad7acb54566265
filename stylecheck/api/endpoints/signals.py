from fastapi import APIRouter, Depends

from stylecheck.api.dependencies import get_signal_provider
from stylecheck.models.item import Item
from stylecheck.services.signals import SignalResult, StyleSignalProvider

router = APIRouter(prefix="/signals", tags=["signals"])


@router.post("/resolve", response_model=SignalResult)
async def resolve_signals(item: Item, provider: StyleSignalProvider = Depends(get_signal_provider)) -> SignalResult:
    """Resolve style signals for one item. Failures come back as a typed error, not an HTTP error."""
    return await provider.resolve(item)
