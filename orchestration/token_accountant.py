# orchestration/token_accountant.py
from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

CONTEXT_STAGE = "context"


class TokenAccountant:
    """Accumulate model token usage per stage (the context build or a section)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.total: int = 0
        self.stage_totals: dict[str, int] = {}

    def record_usage(self, stage: str, usage: dict[str, int] | None) -> None:
        """Record token usage reported for one call made for ``stage``."""
        if not usage:
            return
        tokens = usage.get("total_tokens")
        if not isinstance(tokens, int):
            prompt_tokens = usage.get("prompt_tokens")
            completion_tokens = usage.get("completion_tokens")
            if not (isinstance(prompt_tokens, int) and isinstance(completion_tokens, int)):
                logger.warning(
                    "Usage for '%s' has no token counts. Tokens not added. Usage: %s",
                    stage,
                    usage,
                )
                return
            tokens = prompt_tokens + completion_tokens
        with self._lock:
            self.total += tokens
            self.stage_totals[stage] = self.stage_totals.get(stage, 0) + tokens
            total = self.total
        logger.info("Tokens from '%s': %s. Total this session: %s", stage, tokens, total)

    def get_stage_total(self, stage: str) -> int:
        with self._lock:
            return self.stage_totals.get(stage, 0)
