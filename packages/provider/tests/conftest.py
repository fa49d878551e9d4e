"""Provider 包测试 fixtures"""

import httpx
import pytest


@pytest.fixture
def sample_messages() -> list[dict[str, str]]:
    """标准 messages 格式测试数据"""
    return [
        {"role": "system", "content": "You are a planner."},
        {"role": "user", "content": "Break this down."},
    ]


class ChunkedStream(httpx.AsyncByteStream):
    """分块产出的响应体，模拟尚未读取完毕的流式响应"""

    def __init__(self, chunks: list[bytes]) -> None:
        self._chunks = chunks

    async def __aiter__(self):
        for chunk in self._chunks:
            yield chunk


@pytest.fixture
def chunked_stream():
    """ChunkedStream 构造函数"""
    return ChunkedStream
