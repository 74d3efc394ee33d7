"""Terminal display helpers."""

from .colors import Colors, side_color, transition_color

__all__ = ["Colors", "side_color", "transition_color"]
