"""ANSI color codes for terminal log output (256-color palette).

Usage:
    from toolmesh.logging.colors import GREEN, RESET

    print(f"{GREEN}connected{RESET}")
"""

RESET = "\033[0m"

# Status colors
GREEN = "\033[38;5;82m"  # connected / success
RED = "\033[38;5;196m"  # errors
YELLOW = "\033[38;5;226m"  # warnings, retries
ORANGE = "\033[38;5;208m"  # timeouts

# Informational colors
LIGHT_BLUE = "\033[38;5;153m"  # context payloads
CYAN = "\033[38;5;51m"  # info
MAGENTA = "\033[38;5;201m"  # manager lifecycle

# Component colors
COMPONENT_COLORS = {
    "manager": MAGENTA,
    "server": CYAN,
    "tool": GREEN,
    "config": ORANGE,
}

__all__ = [
    "RESET",
    "GREEN",
    "RED",
    "YELLOW",
    "ORANGE",
    "LIGHT_BLUE",
    "CYAN",
    "MAGENTA",
    "COMPONENT_COLORS",
]
