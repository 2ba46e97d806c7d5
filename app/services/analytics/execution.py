# ============================================================================
# Aggregation Execution Helpers
# ============================================================================
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from app.config import get_settings
from app.core.exceptions import AggregationError, AggregationTimeout

logger = logging.getLogger(__name__)
settings = get_settings()


async def run_with_timeout(operation: str, awaitable: Awaitable[Any], timeout: Optional[float] = None) -> Any:
    """
    Await an aggregation, failing as a whole if it runs too long.

    The inner coroutine is cancelled on timeout, so no partial result
    escapes.
    """
    timeout = timeout if timeout is not None else settings.ANALYTICS_QUERY_TIMEOUT_SECONDS
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        logger.error(f"Aggregation '{operation}' timed out after {timeout}s")
        raise AggregationTimeout(operation, timeout) from None


@dataclass
class AggregationResult:
    """Outcome of one dashboard section: either data or an error, never both"""
    ok: bool
    data: Any = None
    error_code: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, data: Any) -> "AggregationResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: AggregationError) -> "AggregationResult":
        return cls(ok=False, error_code=error.error_code, detail=error.detail)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "data": self.data}
        return {"ok": False, "error_code": self.error_code, "detail": self.detail}


async def collect_sections(sections: Dict[str, Callable[[], Awaitable[Any]]]) -> Dict[str, AggregationResult]:
    """
    Run independent sections one after another on the same session.

    A section that fails with an AggregationError is reported as a failed
    result; other exceptions propagate.
    """
    results = {}
    for name, factory in sections.items():
        try:
            results[name] = AggregationResult.success(await factory())
        except AggregationError as e:
            logger.warning(f"Dashboard section '{name}' failed: {e.error_code}")
            results[name] = AggregationResult.failure(e)
    return results
