"""数据模型 -- TokenUsage + CompletionResult"""

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token 使用统计

    Ollama 在最后一个响应片段中给出 prompt_eval_count / eval_count，
    这里统一映射为 prompt_tokens / completion_tokens / total_tokens。
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class CompletionResult(BaseModel):
    """一次生成调用的结果

    content 为所有片段按到达顺序拼接后的完整文本（未做转义修复），
    raw 为服务端返回的原始响应体，仅用于调试落盘。
    """

    content: str = Field(description="拼接后的完整生成文本")
    raw: str = Field(default="", description="原始响应体（逐行 JSON）")

    model_name: str = Field(default="", description="实际调用的模型名称")
    streamed: bool = Field(default=False, description="是否以增量片段方式接收")
    fragment_count: int = Field(default=0, ge=0, description="包含内容的片段数")

    duration_ms: int = Field(default=0, ge=0, description="端到端耗时（毫秒）")
    attempts: int = Field(default=1, ge=1, description="实际尝试次数（含重试）")

    token_usage: TokenUsage = Field(
        default_factory=TokenUsage,
        description="Token 使用详情",
    )
