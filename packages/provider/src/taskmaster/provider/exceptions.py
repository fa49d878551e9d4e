"""Provider 异常体系

GatewayError 通过显式的 kind 判别字段区分四类失败，
调用方按 kind / recoverable 分支，不再探测异常对象上的任意属性。
"""

from enum import StrEnum


class GatewayErrorKind(StrEnum):
    """Gateway 失败分类"""

    CONNECTIVITY = "connectivity"
    TIMEOUT = "timeout"
    SERVER = "server"
    CLIENT = "client"


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class GatewayError(ProviderError):
    """生成服务调用失败

    Attributes:
        kind: 失败分类（判别字段）
        status: HTTP 状态码，传输层失败时为 None
        hint: 面向用户的修复建议
    """

    kind: GatewayErrorKind = GatewayErrorKind.CLIENT

    def __init__(
        self,
        message: str,
        *,
        hint: str = "",
        status: int | None = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message, recoverable=recoverable)
        self.message = message
        self.hint = hint
        self.status = status

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message} {self.hint}"
        return self.message


class ConnectivityError(GatewayError):
    """生成服务不可达（连接被拒绝、DNS 解析失败、连接中断）"""

    kind = GatewayErrorKind.CONNECTIVITY

    def __init__(self, endpoint: str, original_error: Exception | None = None) -> None:
        super().__init__(
            f"无法连接到 Ollama 服务 {endpoint}。",
            hint=(
                f"请确认 Ollama 已安装并在 {endpoint} 运行，"
                "可从 https://ollama.com/ 下载。"
            ),
            recoverable=True,
        )
        self.endpoint = endpoint
        self.original_error = original_error


class RequestTimeoutError(GatewayError):
    """请求超过响应期限"""

    kind = GatewayErrorKind.TIMEOUT

    def __init__(self, timeout_s: float, original_error: Exception | None = None) -> None:
        super().__init__(
            f"请求 Ollama 超时（{timeout_s:g} 秒）。",
            hint="提示词可能过于复杂或服务繁忙，可调大 TASKMASTER_LLM_TIMEOUT_S 后重试。",
            recoverable=True,
        )
        self.timeout_s = timeout_s
        self.original_error = original_error


class ServerError(GatewayError):
    """服务端 5xx 失败

    带瞬时特征（502/503/504 或错误信息包含 timeout/network）时可重试。
    """

    kind = GatewayErrorKind.SERVER

    def __init__(self, status: int, message: str, *, transient: bool = False) -> None:
        super().__init__(
            f"Ollama 服务错误 ({status}): {message}",
            hint="请查看 Ollama 服务日志获取详细信息。",
            status=status,
            recoverable=transient,
        )


class ClientError(GatewayError):
    """请求被服务端拒绝（格式错误、参数非法）"""

    kind = GatewayErrorKind.CLIENT

    def __init__(self, status: int, message: str, hint: str = "") -> None:
        super().__init__(
            f"Ollama API 错误 ({status}): {message}",
            hint=hint,
            status=status,
            recoverable=False,
        )


class ModelNotFoundError(ClientError):
    """请求的模型在服务端不存在"""

    def __init__(self, model: str, status: int = 404) -> None:
        super().__init__(
            status,
            f'模型 "{model}" 不存在。',
            hint=f"请先执行: ollama pull {model}",
        )
        self.model = model
