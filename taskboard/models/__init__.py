"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from taskboard.models.task import Task, task_assignees  # noqa: F401
from taskboard.models.todo_item import TodoItem  # noqa: F401
from taskboard.models.attachment import Attachment  # noqa: F401
from taskboard.models.user import User  # noqa: F401
from taskboard.models.notification import Notification  # noqa: F401
