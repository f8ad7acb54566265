from functools import lru_cache

from stylecheck.services.pipeline import MatchPipeline
from stylecheck.services.redis_service import redis_service
from stylecheck.services.safety import DailyCallLimiter, SafetyCheckClient, SafetyCheckService, VerdictStore
from stylecheck.services.scoring import ScoringEngine
from stylecheck.services.signals import SignalCache, SignalGenerator, SignalStore, StyleSignalProvider


@lru_cache
def get_scoring_engine() -> ScoringEngine:
    return ScoringEngine()


@lru_cache
def get_signal_generator() -> SignalGenerator:
    return SignalGenerator()


@lru_cache
def get_signal_provider() -> StyleSignalProvider:
    return StyleSignalProvider(
        generator=get_signal_generator(),
        store=SignalStore(redis_service),
        cache=SignalCache(),
    )


@lru_cache
def get_safety_client() -> SafetyCheckClient:
    return SafetyCheckClient()


@lru_cache
def get_safety_service() -> SafetyCheckService:
    return SafetyCheckService(VerdictStore(redis_service), DailyCallLimiter(redis_service))


@lru_cache
def get_pipeline() -> MatchPipeline:
    return MatchPipeline(
        scoring=get_scoring_engine(),
        signals=get_signal_provider(),
        safety_client=get_safety_client(),
    )


async def close_clients() -> None:
    """Close whatever network clients were created during the app's lifetime."""
    if get_safety_client.cache_info().currsize:
        await get_safety_client().close()
    if get_signal_generator.cache_info().currsize:
        await get_signal_generator().close()
    await redis_service.close()
