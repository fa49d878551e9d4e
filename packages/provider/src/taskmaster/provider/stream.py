"""响应组装 -- 将缓冲或增量的逐行 JSON 响应拼接为一段完整文本

两种投递形态共用一个能力接口 FragmentSource（逐行异步产出），
select_fragment_source() 在调用时根据 Response 的状态选择适配器：
- 响应体已完整读入（非流式请求）-> BufferedBodySource
- 响应体尚未读取（流式请求）    -> IncrementalLineSource
"""

import json
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Protocol

import httpx
import structlog

from .models import TokenUsage

log = structlog.get_logger()


class FragmentSource(Protocol):
    """逐行产出响应片段的能力接口"""

    def lines(self) -> AsyncIterator[str]:
        """按到达顺序产出原始行（不含换行符）"""
        ...


class BufferedBodySource:
    """整块响应体适配器"""

    streamed = False

    def __init__(self, body: str) -> None:
        self._body = body

    async def lines(self) -> AsyncIterator[str]:
        for line in self._body.splitlines():
            yield line


class IncrementalLineSource:
    """增量响应适配器 -- 逐行读取尚未消费的 httpx 响应流"""

    streamed = True

    def __init__(self, response: httpx.Response) -> None:
        self._response = response

    async def lines(self) -> AsyncIterator[str]:
        async for line in self._response.aiter_lines():
            yield line


def select_fragment_source(response: httpx.Response) -> FragmentSource:
    """按响应对象当前能力选择适配器"""
    if response.is_closed:
        return BufferedBodySource(response.text)
    return IncrementalLineSource(response)


@dataclass
class AssembledText:
    """组装结果"""

    content: str
    raw: str
    fragment_count: int = 0
    model_name: str = ""
    token_usage: TokenUsage = field(default_factory=TokenUsage)


def parse_fragment(line: str) -> dict | None:
    """解析单行 JSON 片段，无法解析时返回 None"""
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        log.debug("stream_line_unparseable", error=str(e), line=line[:200])
        return None
    return data if isinstance(data, dict) else None


def _fragment_content(data: dict) -> str:
    message = data.get("message")
    if isinstance(message, dict):
        content = message.get("content")
        if isinstance(content, str):
            return content
    return ""


def _token_count(value: object) -> int | None:
    """统计字段缺失记为 0；非法值（非整数或负数）返回 None"""
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def _token_usage(data: dict) -> TokenUsage | None:
    prompt_tokens = _token_count(data.get("prompt_eval_count"))
    completion_tokens = _token_count(data.get("eval_count"))
    if prompt_tokens is None or completion_tokens is None:
        log.debug(
            "token_usage_unparseable",
            prompt_eval_count=repr(data.get("prompt_eval_count")),
            eval_count=repr(data.get("eval_count")),
        )
        return None
    return TokenUsage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=prompt_tokens + completion_tokens,
    )


async def assemble(source: FragmentSource) -> AssembledText:
    """按到达顺序拼接所有片段的 message.content

    空行与无法解析的行被跳过；最后一个带统计字段的片段提供 token 使用数据。
    """
    raw_lines: list[str] = []
    parts: list[str] = []
    model_name = ""
    usage = TokenUsage()

    async for line in source.lines():
        raw_lines.append(line)
        if not line.strip():
            continue
        data = parse_fragment(line)
        if data is None:
            continue

        content = _fragment_content(data)
        if content:
            parts.append(content)

        if not model_name and isinstance(data.get("model"), str):
            model_name = data["model"]

        if data.get("done"):
            usage = _token_usage(data) or usage

    return AssembledText(
        content="".join(parts),
        raw="\n".join(raw_lines),
        fragment_count=len(parts),
        model_name=model_name,
        token_usage=usage,
    )
