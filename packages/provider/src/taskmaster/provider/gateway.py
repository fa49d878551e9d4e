"""ModelGateway -- 生成请求的统一入口

组合 OllamaClient（单次请求 + 响应组装）、RetryPolicy（固定退避重试）
与 ProgressIndicator（定时刷新进度）。同一时刻最多一个请求在途。
"""

from typing import TextIO

import structlog

from .client import OllamaClient
from .config import ProviderConfig
from .models import CompletionResult
from .progress import ProgressIndicator
from .retry import RetryPolicy

log = structlog.get_logger()


class ModelGateway:
    """生成服务网关

    调用契约: generate(system_prompt, user_prompt, model=, max_tokens=) -> CompletionResult，
    失败时抛出 ConnectivityError / RequestTimeoutError / ServerError / ClientError。
    """

    def __init__(
        self,
        client: OllamaClient,
        model: str = "llama3",
        max_tokens: int | None = None,
        stream: bool = True,
        retry_policy: RetryPolicy | None = None,
        progress_stream: TextIO | None = None,
        progress_interval_s: float = 0.5,
    ) -> None:
        """
        Args:
            client: 已配置的 OllamaClient
            model: 默认模型
            max_tokens: 默认最大生成 token 数
            stream: 是否请求增量流式响应
            retry_policy: 重试策略，None 时使用默认 5s/10s 退避
            progress_stream: 进度输出目标，None 时不输出
            progress_interval_s: 进度刷新间隔（秒）
        """
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._stream = stream
        self._retry_policy = retry_policy or RetryPolicy()
        self._progress_stream = progress_stream
        self._progress_interval_s = progress_interval_s

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        client: OllamaClient,
        progress_stream: TextIO | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> "ModelGateway":
        """根据 ProviderConfig 构造网关"""
        return cls(
            client,
            model=config.model,
            max_tokens=config.max_tokens,
            stream=config.stream,
            retry_policy=retry_policy,
            progress_stream=progress_stream,
            progress_interval_s=config.progress_interval_s,
        )

    @property
    def client(self) -> OllamaClient:
        return self._client

    @property
    def model(self) -> str:
        return self._model

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str | None = None,
        max_tokens: int | None = None,
        progress_label: str = "Generating",
    ) -> CompletionResult:
        """发送生成请求并返回拼接后的完整文本

        进度指示在首次尝试前启动，成功或最终失败后停止（重试等待期间持续刷新）。
        """
        resolved_model = model or self._model
        resolved_max_tokens = max_tokens if max_tokens is not None else self._max_tokens
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        async def _attempt(attempt: int) -> CompletionResult:
            log.info(
                "gateway_attempt",
                model=resolved_model,
                attempt=attempt,
                max_attempts=self._retry_policy.max_attempts,
            )
            result = await self._client.chat(
                messages,
                model=resolved_model,
                max_tokens=resolved_max_tokens,
                stream=self._stream,
            )
            return result.model_copy(update={"attempts": attempt})

        progress = ProgressIndicator(
            progress_label,
            interval_s=self._progress_interval_s,
            stream=self._progress_stream,
        )
        async with progress:
            return await self._retry_policy.run(_attempt)
