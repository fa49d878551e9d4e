"""提示词构造 -- 描述结构化抽取所期望的 JSON 形态

build_prd_prompts: 整份文档 { tasks, metadata }
build_subtask_prompts: 从 next_subtask_id 开始编号的 Subtask 裸数组
"""

from taskmaster.core.models import Task

_PRD_SYSTEM_PROMPT = """\
You are an AI assistant helping to break down a Product Requirements Document (PRD) \
into a set of sequential development tasks.
Your goal is to create {num_tasks} well-structured, actionable development tasks \
based on the PRD provided.

Each task should follow this JSON structure:
{{
  "id": number,
  "title": string,
  "description": string,
  "status": "pending",
  "dependencies": number[] (IDs of tasks this depends on),
  "priority": "high" | "medium" | "low",
  "details": string (implementation details),
  "testStrategy": string (validation approach)
}}

Guidelines:
1. Create exactly {num_tasks} tasks, numbered from 1 to {num_tasks}
2. Each task should be atomic and focused on a single responsibility
3. Order tasks logically, setup and core functionality first, then advanced features
4. Set dependency IDs so that a task only depends on tasks with lower IDs
5. Assign priority (high/medium/low) based on criticality and dependency order
6. Include detailed implementation guidance in the "details" field
7. Include a clear validation approach in the "testStrategy" field

Expected output format:
{{
  "tasks": [
    {{"id": 1, "title": "Setup Project Repository", "description": "...", ...}},
    ...
  ],
  "metadata": {{
    "projectName": "PRD Implementation",
    "totalTasks": {num_tasks},
    "sourceFile": "{prd_path}",
    "generatedAt": "YYYY-MM-DD"
  }}
}}

Important: Your response must be valid JSON only, with no additional explanation or comments."""

_SUBTASK_SYSTEM_PROMPT = """\
You are an AI assistant helping with task breakdown for software development.
You need to break down a high-level task into {num_subtasks} specific subtasks \
that can be implemented one by one.

Subtasks should:
1. Be specific and actionable implementation steps
2. Follow a logical sequence
3. Each handle a distinct part of the parent task
4. Have appropriate dependency chains between subtasks
5. Collectively cover all aspects of the parent task

Each subtask should be implementable in a focused coding session.
Your response must be a valid JSON array only, with no additional explanation."""

_SUBTASK_USER_PROMPT = """\
Please break down this task into {num_subtasks} specific, actionable subtasks:

Task ID: {task_id}
Title: {title}
Description: {description}
Current details: {details}
{context}
Return exactly {num_subtasks} subtasks with the following JSON structure:
[
  {{
    "id": {next_id},
    "title": "First subtask title",
    "description": "Detailed description",
    "dependencies": [],
    "details": "Implementation details"
  }},
  ...more subtasks...
]

Note on dependencies: a subtask may only depend on subtasks with lower IDs. \
Write such a dependency as the string "{task_id}.<subtask id>" (for example "{task_id}.{next_id}"). \
A bare number refers to a top-level task. Use an empty array if there are no dependencies."""


def build_prd_prompts(prd_text: str, prd_path: str, num_tasks: int) -> tuple[str, str]:
    """构造 PRD 拆解的 (system_prompt, user_prompt)"""
    system_prompt = _PRD_SYSTEM_PROMPT.format(num_tasks=num_tasks, prd_path=prd_path)
    user_prompt = (
        f"Here's the Product Requirements Document (PRD) to break down "
        f"into {num_tasks} tasks:\n\n{prd_text}"
    )
    return system_prompt, user_prompt


def build_subtask_prompts(
    task: Task,
    num_subtasks: int,
    next_subtask_id: int,
    additional_context: str = "",
) -> tuple[str, str]:
    """构造 Task 展开的 (system_prompt, user_prompt)"""
    system_prompt = _SUBTASK_SYSTEM_PROMPT.format(num_subtasks=num_subtasks)
    context = f"\nAdditional context: {additional_context}\n" if additional_context else ""
    user_prompt = _SUBTASK_USER_PROMPT.format(
        num_subtasks=num_subtasks,
        task_id=task.id,
        title=task.title,
        description=task.description,
        details=task.details or "None provided",
        context=context,
        next_id=next_subtask_id,
    )
    return system_prompt, user_prompt
