"""
Rate limiting utility to prevent excessive API usage.
Caps the combined number of OCR + semantic labeling calls.
"""
import logging
from collections import Counter
from datetime import datetime
from threading import Lock
from typing import Dict, Optional, Tuple

from field_layout.config import Config

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Total-call budget shared by every external collaborator.

    Pages are labeled from concurrent worker threads, so checking the budget
    and spending it happen under one lock in acquire().
    """

    def __init__(self, max_total_calls: Optional[int] = None, enabled: Optional[bool] = None):
        """
        Args:
            max_total_calls: Budget across all services (defaults to Config.MAX_TOTAL_CALLS)
            enabled: Whether the budget is enforced (defaults to Config.ENABLE_RATE_LIMITING)
        """
        self.max_total_calls = max_total_calls if max_total_calls is not None else Config.MAX_TOTAL_CALLS
        self.enabled = Config.ENABLE_RATE_LIMITING if enabled is None else enabled
        self.calls: Counter = Counter()
        self.refused: Counter = Counter()
        self.last_call: Dict[str, datetime] = {}
        self.lock = Lock()
        self.start_time = datetime.now()

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def acquire(self, service: str) -> Tuple[bool, str]:
        """
        Spend one call from the budget on behalf of a service.

        Args:
            service: Service name ('document_intelligence' or 'semantic_labeler')

        Returns:
            Tuple of (allowed, reason). Disabled limiters always allow but
            still count the call.
        """
        with self.lock:
            used = self.total_calls
            if self.enabled and used >= self.max_total_calls:
                self.refused[service] += 1
                return False, f"Total call limit reached: {used}/{self.max_total_calls} calls across all services"

            self.calls[service] += 1
            self.last_call[service] = datetime.now()
            used += 1

        logger.info(f"{service} call {used}/{self.max_total_calls}")
        return True, "OK"

    def get_stats(self, service: Optional[str] = None) -> Dict:
        """Budget usage for one service, or for all of them combined."""
        with self.lock:
            if service:
                last = self.last_call.get(service)
                return {
                    'service': service,
                    'total_calls': self.calls[service],
                    'refused_calls': self.refused[service],
                    'last_call': last.isoformat() if last else None
                }

            used = self.total_calls
            return {
                'total_calls': used,
                'max_calls': self.max_total_calls,
                'remaining_calls': max(0, self.max_total_calls - used),
                'calls_by_service': dict(self.calls),
                'session_duration': (datetime.now() - self.start_time).total_seconds()
            }

    def reset(self):
        """Forget all spent calls."""
        with self.lock:
            self.calls.clear()
            self.refused.clear()
            self.last_call.clear()
            self.start_time = datetime.now()
        logger.info("Rate limiter reset")
