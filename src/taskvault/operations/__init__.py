from .mutations import LineEdit, MutationEngine, MutationResult
from .undo import UndoConfig, UndoLedger, UndoOperation, UndoOutcome, UndoResult
from .undoable import TaskChange, UndoableMutations

__all__ = [
    "LineEdit",
    "MutationEngine",
    "MutationResult",
    "UndoConfig",
    "UndoLedger",
    "UndoOperation",
    "UndoOutcome",
    "UndoResult",
    "TaskChange",
    "UndoableMutations",
]
