"""
Pretty terminal output for the discovery workflow.

Shared by the console HITL prompt and the CLI progress observer so stage
progress, rules and reviewer questions render with one look.
"""

import os

from colorama import Fore, Style


class PrettyOutput:
    """Colour scheme, symbols and print helpers for terminal output."""

    # Color scheme
    PRIMARY = Fore.CYAN
    SUCCESS = Fore.GREEN
    WARNING = Fore.YELLOW
    ERROR = Fore.RED
    INFO = Fore.BLUE
    HEADER = Fore.WHITE + Style.BRIGHT
    DIM = Style.DIM
    RESET = Style.RESET_ALL

    # Symbols
    CHECK = "✓"
    CROSS = "✗"
    ARROW = "→"
    WARN = "⚠"
    INFO_SYMBOL = "ℹ"
    STAR = "★"

    SEVERITY_COLORS = {
        "Critical": Fore.RED + Style.BRIGHT,
        "High": Fore.RED,
        "Medium": Fore.YELLOW,
        "Low": Fore.GREEN,
    }

    @staticmethod
    def get_terminal_width():
        """Terminal width, 80 when it cannot be determined (e.g. output piped)."""
        try:
            return os.get_terminal_size().columns
        except OSError:
            return 80

    @staticmethod
    def header(text, width=None):
        """Print a boxed major header."""
        if width is None:
            width = min(PrettyOutput.get_terminal_width(), 80)

        padding = (width - len(text) - 2) // 2
        line = "═" * width

        print(f"\n{PrettyOutput.PRIMARY}╔{line}╗")
        print(f"║{' ' * padding}{text}{' ' * (width - len(text) - padding)}║")
        print(f"╚{line}╝{PrettyOutput.RESET}\n")

    @staticmethod
    def section(text, width=None):
        if width is None:
            width = min(PrettyOutput.get_terminal_width(), 80)

        line = "─" * width
        print(f"\n{PrettyOutput.HEADER}{line}")
        print(f"{PrettyOutput.ARROW} {text}")
        print(f"{line}{PrettyOutput.RESET}\n")

    @staticmethod
    def success(message, indent=0):
        spaces = " " * indent
        print(f"{spaces}{PrettyOutput.SUCCESS}{PrettyOutput.CHECK}{PrettyOutput.RESET} {message}")

    @staticmethod
    def error(message, indent=0):
        spaces = " " * indent
        print(f"{spaces}{PrettyOutput.ERROR}{PrettyOutput.CROSS}{PrettyOutput.RESET} {message}")

    @staticmethod
    def warning(message, indent=0):
        spaces = " " * indent
        print(f"{spaces}{PrettyOutput.WARNING}{PrettyOutput.WARN}{PrettyOutput.RESET} {message}")

    @staticmethod
    def info(message, indent=0):
        spaces = " " * indent
        print(f"{spaces}{PrettyOutput.INFO}{PrettyOutput.INFO_SYMBOL}{PrettyOutput.RESET} {message}")

    @staticmethod
    def key_value(key, value, indent=0, value_color=None):
        spaces = " " * indent
        if value_color:
            print(f"{spaces}{PrettyOutput.DIM}{key}:{PrettyOutput.RESET} {value_color}{value}{PrettyOutput.RESET}")
        else:
            print(f"{spaces}{PrettyOutput.DIM}{key}:{PrettyOutput.RESET} {value}")

    @staticmethod
    def summary_box(title, items, width=60):
        """
        Print a summary box.

        Args:
            title: Box title
            items: List of (key, value, color) tuples
            width: Box width
        """
        print(f"\n{PrettyOutput.PRIMARY}┌{'─' * (width - 2)}┐{PrettyOutput.RESET}")

        title_padding = (width - len(title) - 4) // 2
        print(f"{PrettyOutput.PRIMARY}│{PrettyOutput.RESET} {' ' * title_padding}{PrettyOutput.HEADER}{title}"
              f"{PrettyOutput.RESET}{' ' * (width - len(title) - title_padding - 4)} {PrettyOutput.PRIMARY}│{PrettyOutput.RESET}")

        print(f"{PrettyOutput.PRIMARY}├{'─' * (width - 2)}┤{PrettyOutput.RESET}")

        for key, value, color in items:
            value_str = str(value)
            padding = max(1, width - len(key) - len(value_str) - 6)
            print(f"{PrettyOutput.PRIMARY}│{PrettyOutput.RESET}  {PrettyOutput.DIM}{key}:{PrettyOutput.RESET}"
                  f"{' ' * padding}{color}{value_str}{PrettyOutput.RESET}  {PrettyOutput.PRIMARY}│{PrettyOutput.RESET}")

        print(f"{PrettyOutput.PRIMARY}└{'─' * (width - 2)}┘{PrettyOutput.RESET}\n")

    @staticmethod
    def blank_line():
        print()

    @staticmethod
    def rule_line(rule, indent=2):
        """
        Print one discovered rule with its severity colour and review flag.

        Args:
            rule: PreprocessingRule
            indent: Indentation spaces
        """
        spaces = " " * indent
        severity = str(rule.parameters.get('severity', ""))
        color = PrettyOutput.SEVERITY_COLORS.get(severity, PrettyOutput.DIM)
        review = f" {PrettyOutput.WARNING}[review]{PrettyOutput.RESET}" if rule.requires_hitl else ""
        print(f"{spaces}{color}●{PrettyOutput.RESET} {rule.description} "
              f"{PrettyOutput.DIM}(p{rule.priority}, {rule.confidence:.0%}){PrettyOutput.RESET}{review}")

    @staticmethod
    def option(key, label, description="", recommended=False, indent=2):
        """Print one answer option of a reviewer question."""
        spaces = " " * indent
        marker = f" {PrettyOutput.SUCCESS}{PrettyOutput.STAR} recommended{PrettyOutput.RESET}" if recommended else ""
        print(f"{spaces}{PrettyOutput.PRIMARY}[{key}]{PrettyOutput.RESET} {label}{marker}")
        if description:
            print(f"{spaces}    {PrettyOutput.DIM}{description}{PrettyOutput.RESET}")
