"""taskmaster Provider -- 生成服务调用层

packages/provider 的公开接口导出。
"""

# 核心组件
from .client import OllamaClient

# 配置
from .config import ProviderConfig, load_provider_config
from .debug import DebugDumper

# 异常
from .exceptions import (
    ClientError,
    ConnectivityError,
    GatewayError,
    GatewayErrorKind,
    ModelNotFoundError,
    ProviderError,
    RequestTimeoutError,
    ServerError,
)
from .gateway import ModelGateway

# 数据模型
from .models import CompletionResult, TokenUsage
from .normalizer import normalize_response
from .progress import ProgressIndicator
from .retry import DEFAULT_BACKOFF_S, RetryPolicy

__all__ = [
    "CompletionResult",
    "TokenUsage",
    "OllamaClient",
    "ModelGateway",
    "RetryPolicy",
    "DEFAULT_BACKOFF_S",
    "ProgressIndicator",
    "DebugDumper",
    "normalize_response",
    "ProviderConfig",
    "load_provider_config",
    "ProviderError",
    "GatewayError",
    "GatewayErrorKind",
    "ConnectivityError",
    "RequestTimeoutError",
    "ServerError",
    "ClientError",
    "ModelNotFoundError",
]
