from .task_index import TaskIndex

__all__ = ["TaskIndex"]
