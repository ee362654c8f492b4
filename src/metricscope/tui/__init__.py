"""Interactive terminal view: state machine, render orchestration and the textual app."""

from .state import Action, KeyPress, Session, handle, start

__all__ = ["Action", "KeyPress", "Session", "handle", "start"]
