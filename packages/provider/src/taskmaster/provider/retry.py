"""RetryPolicy -- 固定退避重试

只重试 recoverable 的 GatewayError（连接失败、超时、带瞬时特征的服务端错误）；
其余错误立即抛出，不消耗重试预算。
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

import structlog

from .exceptions import GatewayError

log = structlog.get_logger()

T = TypeVar("T")

# 第 1 次失败后等待 5 秒，第 2 次失败后等待 10 秒，共 3 次尝试
DEFAULT_BACKOFF_S: tuple[float, ...] = (5.0, 10.0)


class RetryPolicy:
    """固定退避重试策略"""

    def __init__(
        self,
        backoff_s: Sequence[float] = DEFAULT_BACKOFF_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Args:
            backoff_s: 每次重试前的等待时长，长度即额外重试次数
            sleep: 等待函数（测试时注入以避免真实等待）
        """
        self._backoff_s = tuple(backoff_s)
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return len(self._backoff_s) + 1

    async def run(self, call: Callable[[int], Awaitable[T]]) -> T:
        """执行 call，按策略重试

        Args:
            call: 接收当前尝试序号（从 1 开始）的异步调用

        Returns:
            call 的返回值

        Raises:
            GatewayError: 不可恢复的错误，或重试预算耗尽后的最后一次错误
        """
        attempt = 1
        while True:
            try:
                return await call(attempt)
            except GatewayError as e:
                if not e.recoverable or attempt >= self.max_attempts:
                    log.error(
                        "gateway_call_gave_up",
                        kind=e.kind,
                        attempt=attempt,
                        max_attempts=self.max_attempts,
                        error=str(e),
                    )
                    raise
                delay = self._backoff_s[attempt - 1]
                log.warning(
                    "gateway_retry_scheduled",
                    kind=e.kind,
                    attempt=attempt,
                    max_attempts=self.max_attempts,
                    delay_s=delay,
                    error=e.message,
                )
                await self._sleep(delay)
                attempt += 1
