"""Console presentation layer."""

from .dashboard_screen import DashboardScreen
from .keyboard_input import KeyboardInputHandler

__all__ = [
    "DashboardScreen",
    "KeyboardInputHandler",
]
