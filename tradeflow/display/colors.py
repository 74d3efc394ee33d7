"""ANSI color codes for terminal output."""

from ..engine.data_types import Side, TransitionType


class Colors:
    """ANSI escape codes for terminal coloring."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    MAGENTA = "\033[95m"
    CYAN = "\033[96m"


def side_color(side: Side) -> str:
    """Buy aggression is green, sell aggression red."""
    return Colors.GREEN if side is Side.BUY else Colors.RED


def transition_color(transition_type: TransitionType) -> str:
    if transition_type is TransitionType.THRUST_UP:
        return Colors.GREEN
    if transition_type is TransitionType.THRUST_DOWN:
        return Colors.RED
    if transition_type is TransitionType.ABSORPTION:
        return Colors.MAGENTA
    return Colors.YELLOW
