import asyncio
from collections.abc import Iterable

from loguru import logger

from stylecheck.models.item import Item
from stylecheck.services.signals.cache import SignalCache
from stylecheck.services.signals.generator import SignalGenerator, SignalResult, SignalSource
from stylecheck.services.signals.store import SignalStore


class StyleSignalProvider:
    """
    Resolves style signals for items.

    Lookup order: signals already on the item, the in-memory cache, the
    durable store, then remote generation. Only successful generations are
    written back. Concurrent requests for one item share a single task.
    """

    def __init__(
        self,
        generator: SignalGenerator,
        store: SignalStore | None = None,
        cache: SignalCache | None = None,
    ) -> None:
        self.generator = generator
        self.store = store
        self.cache = cache if cache is not None else SignalCache()
        self._inflight: dict[str, asyncio.Task] = {}

    async def resolve(self, item: Item) -> SignalResult:
        if item.style_signals is not None:
            return SignalResult(item_id=item.id, signals=item.style_signals, source=SignalSource.ITEM)

        cached = self.cache.get(item.id)
        if cached is not None:
            return SignalResult(item_id=item.id, signals=cached, source=SignalSource.CACHE)

        task = self._inflight.get(item.id)
        if task is None:
            task = asyncio.create_task(self._load(item))
            self._inflight[item.id] = task
            task.add_done_callback(lambda _, key=item.id: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def resolve_many(self, items: Iterable[Item]) -> dict[str, SignalResult]:
        unique = list({item.id: item for item in items}.values())
        results = await asyncio.gather(*(self.resolve(item) for item in unique))
        return {result.item_id: result for result in results}

    async def _load(self, item: Item) -> SignalResult:
        if self.store is not None:
            stored = await self.store.get(item.id)
            if stored is not None:
                self.cache.set(item.id, stored)
                return SignalResult(item_id=item.id, signals=stored, source=SignalSource.STORE)

        result = await self.generator.generate(item)
        if not result.ok:
            error = result.error
            logger.warning(f"Style signals unavailable for {item.id}: {error.kind.value} ({error.message})")
            return result

        self.cache.set(item.id, result.signals)
        if self.store is not None:
            await self.store.put(item.id, result.signals)
        logger.debug(f"Generated style signals for {item.id}")
        return result
