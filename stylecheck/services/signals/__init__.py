from .cache import SignalCache
from .generator import SignalError, SignalErrorKind, SignalGenerator, SignalResult, SignalSource
from .hashing import djb2, signals_hash
from .image import prepare_image_payload
from .provider import StyleSignalProvider
from .store import SignalStore

__all__ = [
    "SignalCache",
    "SignalError",
    "SignalErrorKind",
    "SignalGenerator",
    "SignalResult",
    "SignalSource",
    "SignalStore",
    "StyleSignalProvider",
    "djb2",
    "prepare_image_payload",
    "signals_hash",
]
