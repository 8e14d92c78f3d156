"""
In-memory sliding-window rate limiting.
One process-wide limiter backs both the global middleware limit and the per-route
limits on login, invites and share links.
"""
import asyncio
from typing import Dict, Optional
from datetime import datetime, timedelta, timezone
from collections import defaultdict, deque
from dataclasses import dataclass
import logging

from fastapi import Depends, HTTPException, Request, status

from services.security import SecurityUtils

logger = logging.getLogger(__name__)

@dataclass
class RateLimitResult:
    """Result of rate limit check."""
    allowed: bool
    remaining: int
    reset_time: datetime
    retry_after: Optional[int] = None

class InMemoryRateLimiter:
    """
    Rate limiter for a single process. Counters are not shared between
    workers, so limits apply per worker.
    """

    def __init__(self):
        # Structure: {client_key: deque([timestamp1, timestamp2, ...])}
        self._requests: Dict[str, deque] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def check_rate_limit(self, client_key: str, window_seconds: int = 60,
                               max_requests: int = 60) -> RateLimitResult:
        """
        Check if client is within rate limits and record the request if so.

        Args:
            client_key: Unique identifier for the client and bucket, e.g. "login:10.0.0.1"
            window_seconds: Time window in seconds
            max_requests: Maximum requests allowed in window
        """
        async with self._lock:
            now = datetime.now(timezone.utc)
            window_start = now - timedelta(seconds=window_seconds)

            client_requests = self._requests[client_key]
            while client_requests and client_requests[0] < window_start:
                client_requests.popleft()

            current_requests = len(client_requests)
            remaining = max(0, max_requests - current_requests)

            if current_requests >= max_requests:
                reset_time = client_requests[0] + timedelta(seconds=window_seconds)
                retry_after = max(1, int((reset_time - now).total_seconds()))

                SecurityUtils.log_security_event(
                    "rate_limit_exceeded",
                    {
                        "client_key": client_key,
                        "current_requests": current_requests,
                        "max_requests": max_requests,
                        "window_seconds": window_seconds
                    }
                )

                return RateLimitResult(
                    allowed=False,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after=retry_after
                )

            client_requests.append(now)
            return RateLimitResult(
                allowed=True,
                remaining=remaining - 1,
                reset_time=now + timedelta(seconds=window_seconds)
            )

    async def cleanup_expired(self):
        """Drop request history older than an hour. Called periodically."""
        async with self._lock:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=1)
            for client_key, requests in list(self._requests.items()):
                while requests and requests[0] < cutoff:
                    requests.popleft()
                if not requests:
                    del self._requests[client_key]

    def reset(self):
        """Forget all recorded requests."""
        self._requests.clear()

# Global rate limiter instance
rate_limiter = InMemoryRateLimiter()

async def cleanup_rate_limiter():
    """Background task to clean up expired rate limiter entries."""
    while True:
        try:
            await rate_limiter.cleanup_expired()
        except Exception as e:
            logger.error(f"Error in rate limiter cleanup: {e}")
        await asyncio.sleep(300)

def get_rate_limiter() -> InMemoryRateLimiter:
    """Get the global rate limiter instance."""
    return rate_limiter

def limit_requests(bucket: str, max_requests: int, window_seconds: int = 60):
    """
    Dependency factory for a per-route limit keyed on client IP.

    Usage:
        @router.post("/login", dependencies=[limit_requests("login", 5)])
    """
    async def limiter_dependency(request: Request,
                                 limiter: InMemoryRateLimiter = Depends(get_rate_limiter)):
        client_ip = SecurityUtils.get_client_ip(request)
        result = await limiter.check_rate_limit(
            f"{bucket}:{client_ip}",
            window_seconds=window_seconds,
            max_requests=max_requests
        )
        if not result.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests",
                headers={"Retry-After": str(result.retry_after)}
            )

    return Depends(limiter_dependency)
