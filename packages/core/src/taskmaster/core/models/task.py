"""Task Domain Model

磁盘上的任务文档使用 camelCase 键（testStrategy、parentTaskId、projectName ...），
模型字段使用 snake_case，通过 alias 映射；未知键原样保留。
"""

from pydantic import BaseModel, ConfigDict, Field

from .enums import TaskPriority, TaskStatus


class _DocumentModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> dict:
        """转换为落盘用的 camelCase dict"""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Subtask(_DocumentModel):
    """Subtask 数据模型 -- 身份为 (parent_task_id, id)，id 仅在父 Task 内唯一"""

    id: int = Field(ge=1, description="父 Task 内的局部 ID")
    title: str = Field(default="", description="标题")
    description: str = Field(default="", description="描述")
    dependencies: list[int | str] = Field(
        default_factory=list,
        description="依赖引用：整数为顶层 Task，'parent.local' 为 Subtask",
    )
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    details: str = Field(default="", description="实现细节")
    parent_task_id: int | None = Field(
        default=None,
        alias="parentTaskId",
        description="父 Task ID",
    )


class Task(_DocumentModel):
    """Task 数据模型"""

    id: int = Field(ge=1, description="顶层唯一 ID")
    title: str = Field(default="", description="标题")
    description: str = Field(default="", description="描述")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    dependencies: list[int | str] = Field(
        default_factory=list,
        description="依赖引用：整数为顶层 Task，'parent.local' 为 Subtask",
    )
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="优先级")
    details: str = Field(default="", description="实现细节")
    test_strategy: str = Field(
        default="",
        alias="testStrategy",
        description="验证方式",
    )
    subtasks: list[Subtask] = Field(default_factory=list, description="有序子任务")

    def next_subtask_id(self) -> int:
        """下一个可用的 Subtask ID（现有最大 ID + 1）"""
        return max((s.id for s in self.subtasks), default=0) + 1


class TaskMetadata(_DocumentModel):
    """任务文档元数据"""

    project_name: str = Field(default="", alias="projectName", description="项目名称")
    total_tasks: int = Field(default=0, ge=0, alias="totalTasks", description="任务总数")
    source_file: str = Field(default="", alias="sourceFile", description="来源 PRD 文件")
    generated_at: str = Field(default="", alias="generatedAt", description="生成日期")
    note: str | None = Field(default=None, description="附注（如解析降级说明）")


class TaskDocument(_DocumentModel):
    """任务文档 -- { tasks: Task[], metadata: {...} }"""

    tasks: list[Task] = Field(default_factory=list, description="顶层任务")
    metadata: TaskMetadata = Field(default_factory=TaskMetadata, description="元数据")

    def find_task(self, task_id: int) -> Task | None:
        """按 ID 查找顶层 Task"""
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None
