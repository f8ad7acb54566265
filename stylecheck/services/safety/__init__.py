from .client import SafetyCheckClient, request_key
from .rollout import in_rollout, user_bucket
from .service import SafetyCheckService, parse_verdicts
from .triggers import select_safety_candidates, should_run_safety_check
from .verdict_store import DailyCallLimiter, VerdictStore

__all__ = [
    "DailyCallLimiter",
    "SafetyCheckClient",
    "SafetyCheckService",
    "VerdictStore",
    "in_rollout",
    "parse_verdicts",
    "request_key",
    "select_safety_candidates",
    "should_run_safety_check",
    "user_bucket",
]
