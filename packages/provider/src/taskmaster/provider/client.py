"""OllamaClient -- Ollama /api/chat 调用封装

单次请求、无重试；传输层异常与 HTTP 错误在此统一归类为 GatewayError 子类。
重试由 RetryPolicy 负责，进度指示与调试落盘由 ModelGateway 负责。
"""

import time

import httpx
import structlog

from .exceptions import (
    ClientError,
    ConnectivityError,
    GatewayError,
    ModelNotFoundError,
    RequestTimeoutError,
    ServerError,
)
from .models import CompletionResult
from .stream import IncrementalLineSource, assemble, select_fragment_source

log = structlog.get_logger()

# 健康检查超时（硬编码，应快速响应）
HEALTH_CHECK_TIMEOUT_S = 5

# 带瞬时特征的 5xx 状态码
_TRANSIENT_STATUSES = frozenset({502, 503, 504})
_TRANSIENT_MARKERS = ("timeout", "network")

# 超时类异常（须先于连接类判断，内置 TimeoutError 也是 OSError）
_TIMEOUT_ERROR_TYPES = (httpx.TimeoutException, TimeoutError)

# 连接类异常（不含超时）
_CONNECTION_ERROR_TYPES = (
    httpx.ConnectError,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
    ConnectionError,
    OSError,
)


def _error_message(response: httpx.Response) -> str:
    """从错误响应体中提取 error 字段"""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text.strip() or f"HTTP error {response.status_code}"


def classify_http_error(status: int, message: str, model: str) -> GatewayError:
    """将非成功 HTTP 状态映射为 GatewayError 子类"""
    if status == 404:
        return ModelNotFoundError(model, status=status)
    if status >= 500:
        lowered = message.lower()
        transient = status in _TRANSIENT_STATUSES or any(
            marker in lowered for marker in _TRANSIENT_MARKERS
        )
        return ServerError(status, message, transient=transient)
    if status == 400:
        return ClientError(
            status,
            message,
            hint="请求格式错误，提示词可能存在问题。",
        )
    return ClientError(status, message)


class OllamaClient:
    """Ollama HTTP 客户端

    httpx.AsyncClient 在组合根处显式创建后注入；未注入时在首次使用时创建并复用。
    """

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        timeout_s: float = 300.0,
        http_client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化 Ollama 客户端

        Args:
            base_url: Ollama 服务基础 URL
            timeout_s: 请求超时（秒）
            http_client: 预先配置好的 httpx.AsyncClient
            transport: 自定义传输层（测试时注入 httpx.MockTransport）
        """
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._http = http_client
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._base_url

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout_s,
                transport=self._transport,
            )
        return self._http

    async def aclose(self) -> None:
        """关闭底层 HTTP 连接池"""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: str,
        max_tokens: int | None = None,
        stream: bool = True,
    ) -> CompletionResult:
        """发送一次 chat 请求并组装完整文本

        Args:
            messages: 消息列表，格式 [{"role": "system"|"user", "content": "..."}]
            model: 模型名称
            max_tokens: 最大生成 token 数（映射为 options.num_predict）
            stream: True 时逐行增量接收，False 时一次性接收完整响应体

        Returns:
            CompletionResult

        Raises:
            ConnectivityError: 服务不可达
            RequestTimeoutError: 超过响应期限
            ServerError / ClientError / ModelNotFoundError: 服务端返回错误
        """
        start_time = time.monotonic()
        body: dict = {"model": model, "messages": messages, "stream": stream}
        if max_tokens is not None:
            body["options"] = {"num_predict": max_tokens}

        log.debug(
            "ollama_chat_start",
            model=model,
            message_count=len(messages),
            stream=stream,
        )

        try:
            async with self._client().stream("POST", "/api/chat", json=body) as response:
                if response.is_error:
                    await response.aread()
                    raise classify_http_error(
                        response.status_code,
                        _error_message(response),
                        model,
                    )
                if not stream:
                    await response.aread()
                source = select_fragment_source(response)
                assembled = await assemble(source)
        except GatewayError as e:
            log.error(
                "ollama_chat_failed",
                model=model,
                kind=e.kind,
                status=e.status,
                error=e.message,
            )
            raise
        except _TIMEOUT_ERROR_TYPES as e:
            log.error("ollama_chat_failed", model=model, kind="timeout", error=str(e))
            raise RequestTimeoutError(self._timeout_s, original_error=e) from e
        except _CONNECTION_ERROR_TYPES as e:
            log.error(
                "ollama_chat_failed",
                model=model,
                kind="connectivity",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ConnectivityError(self._base_url, original_error=e) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        result = CompletionResult(
            content=assembled.content,
            raw=assembled.raw,
            model_name=assembled.model_name or model,
            streamed=isinstance(source, IncrementalLineSource),
            fragment_count=assembled.fragment_count,
            duration_ms=duration_ms,
            token_usage=assembled.token_usage,
        )

        log.info(
            "ollama_chat_completed",
            model=result.model_name,
            streamed=result.streamed,
            fragment_count=result.fragment_count,
            duration_ms=duration_ms,
        )
        return result

    async def list_models(self) -> list[str]:
        """查询服务端已安装的模型名称（GET /api/tags）"""
        try:
            resp = await self._client().get("/api/tags", timeout=HEALTH_CHECK_TIMEOUT_S)
        except _TIMEOUT_ERROR_TYPES as e:
            raise RequestTimeoutError(HEALTH_CHECK_TIMEOUT_S, original_error=e) from e
        except _CONNECTION_ERROR_TYPES as e:
            raise ConnectivityError(self._base_url, original_error=e) from e
        if resp.is_error:
            raise classify_http_error(resp.status_code, _error_message(resp), "")
        models = resp.json().get("models") or []
        return [m["name"] for m in models if isinstance(m, dict) and m.get("name")]

    async def is_model_available(self, model: str) -> bool:
        """判断模型是否已安装，不带 tag 的名称匹配其 :latest 版本"""
        names = await self.list_models()
        wanted = {model, f"{model}:latest"} if ":" not in model else {model}
        return any(name in wanted for name in names)

    async def health_check(self) -> bool:
        """检查 Ollama 服务可达性

        Returns:
            True 如果服务活跃，False 如果不可达或异常

        注意: 此方法不抛出异常，所有异常内部捕获并返回 False。
        """
        try:
            resp = await self._client().get("/api/tags", timeout=HEALTH_CHECK_TIMEOUT_S)
            return resp.status_code == 200
        except Exception as e:
            log.debug("health_check_failed", url=self._base_url, error=str(e))
            return False
