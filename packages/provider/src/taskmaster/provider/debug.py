"""调试落盘 -- 仅调试模式下把原始/拼接/修复后的响应文本写入文件

不属于功能契约：写入失败只记录 warning。
"""

from pathlib import Path

import structlog

log = structlog.get_logger()


class DebugDumper:
    """调试文件写入器"""

    def __init__(self, directory: Path | str = ".", enabled: bool = False) -> None:
        self._directory = Path(directory)
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def dump(self, label: str, **texts: str) -> list[Path]:
        """写入 <label>_<name>_debug.txt

        Args:
            label: 文件名前缀（如 ollama_prd、ollama_subtasks）
            **texts: name -> 文本内容，如 raw=..., accumulated=..., processed=...

        Returns:
            实际写入的文件路径
        """
        if not self._enabled:
            return []

        written: list[Path] = []
        for name, text in texts.items():
            path = self._directory / f"{label}_{name}_debug.txt"
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(text, encoding="utf-8")
            except OSError as e:
                log.warning("debug_dump_failed", path=str(path), error=str(e))
                continue
            written.append(path)
            log.debug("debug_dump_written", path=str(path), preview=text[:500])
        return written
