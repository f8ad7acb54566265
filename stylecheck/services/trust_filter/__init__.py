from .config import TrustFilterConfig, merge_remote_config
from .evaluate import evaluate_batch, evaluate_pair

__all__ = ["TrustFilterConfig", "evaluate_batch", "evaluate_pair", "merge_remote_config"]
