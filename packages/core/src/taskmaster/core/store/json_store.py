"""TaskDocumentStore JSON 文件实现

磁盘格式为 camelCase 键的 { tasks, metadata } 文档。
写入先落到同目录临时文件，再 os.replace 覆盖，读者不会看到半写状态。
"""

import json
import os
import tempfile
from pathlib import Path

import structlog
from pydantic import ValidationError

from ..exceptions import TaskFileFormatError, TaskFileNotFoundError
from ..models.task import TaskDocument

log = structlog.get_logger()


class JsonTaskFileStore:
    """TaskDocumentStore 的 JSON 文件实现"""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def load(self) -> TaskDocument:
        """读取并校验任务文档"""
        if not self.exists():
            raise TaskFileNotFoundError(str(self._path))

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise TaskFileFormatError(str(self._path), str(e)) from e

        try:
            document = TaskDocument.model_validate(data)
        except ValidationError as e:
            raise TaskFileFormatError(str(self._path), str(e)) from e

        log.debug("task_file_loaded", path=str(self._path), tasks=len(document.tasks))
        return document

    def save(self, document: TaskDocument) -> None:
        """写回任务文档（临时文件 + os.replace）"""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(document.to_document(), indent=2, ensure_ascii=False) + "\n"

        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent,
            prefix=f".{self._path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        log.info("task_file_saved", path=str(self._path), tasks=len(document.tasks))
