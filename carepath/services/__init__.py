# carepath/services/__init__.py
from .workflow import WorkflowController

__all__ = ["WorkflowController"]
