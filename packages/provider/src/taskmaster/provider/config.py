"""ProviderConfig -- Provider 配置加载

从环境变量加载配置，变量名沿用 Ollama 生态的约定。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

_TRUE_VALUES = {"1", "true", "yes", "on"}


class ProviderConfig(BaseModel):
    """Provider 包配置 -- 从环境变量加载

    环境变量:
        OLLAMA_API_URL: Ollama 服务地址（默认 http://localhost:11434）
        OLLAMA_MODEL: 生成模型（默认 llama3）
        MAX_TOKENS: 最大生成 token 数（默认 4000）
        TASKMASTER_LLM_TIMEOUT_S: 单次请求超时（秒，默认 300）
        TASKMASTER_LLM_STREAM: 是否使用流式响应（默认 true）
        DEBUG: 调试模式，落盘原始/拼接/修复后的响应文本
        TASKMASTER_DEBUG_DIR: 调试文件目录（默认当前目录）
        TASKMASTER_PROGRESS_INTERVAL_S: 进度指示刷新间隔（秒，默认 0.5）
    """

    api_base_url: str = Field(
        default="http://localhost:11434",
        description="Ollama 服务基础 URL",
    )
    model: str = Field(default="llama3", description="默认生成模型")
    max_tokens: int = Field(default=4000, ge=1, description="最大生成 token 数")
    timeout_s: float = Field(default=300.0, ge=1, description="请求超时（秒）")
    stream: bool = Field(default=True, description="是否请求增量流式响应")
    debug: bool = Field(default=False, description="调试模式")
    debug_dir: Path = Field(default=Path("."), description="调试文件目录")
    progress_interval_s: float = Field(
        default=0.5,
        gt=0,
        description="进度指示刷新间隔（秒）",
    )


def _env_flag(value: str) -> bool:
    return value.strip().lower() in _TRUE_VALUES


def _parse_number(env_var: str, value: str, cast, fallback) -> int | float | None:
    """解析数值型环境变量，非法值记录 warning 并返回 None（使用默认值）"""
    try:
        return cast(value)
    except ValueError:
        log.warning(
            "invalid_numeric_config",
            env_var=env_var,
            value=value,
            fallback=fallback,
        )
        return None


def load_provider_config() -> ProviderConfig:
    """从环境变量加载 Provider 配置

    Returns:
        ProviderConfig 实例
    """
    defaults = ProviderConfig()
    kwargs: dict = {}

    if val := os.environ.get("OLLAMA_API_URL"):
        kwargs["api_base_url"] = val.rstrip("/")

    if val := os.environ.get("OLLAMA_MODEL"):
        kwargs["model"] = val

    numeric_vars = (
        ("MAX_TOKENS", "max_tokens", int),
        ("TASKMASTER_LLM_TIMEOUT_S", "timeout_s", float),
        ("TASKMASTER_PROGRESS_INTERVAL_S", "progress_interval_s", float),
    )
    for env_var, field_name, cast in numeric_vars:
        if val := os.environ.get(env_var):
            parsed = _parse_number(env_var, val, cast, getattr(defaults, field_name))
            if parsed is not None:
                kwargs[field_name] = parsed

    if val := os.environ.get("TASKMASTER_LLM_STREAM"):
        kwargs["stream"] = _env_flag(val)

    if val := os.environ.get("DEBUG"):
        kwargs["debug"] = _env_flag(val)

    if val := os.environ.get("TASKMASTER_DEBUG_DIR"):
        kwargs["debug_dir"] = Path(val)

    return ProviderConfig(**kwargs)
