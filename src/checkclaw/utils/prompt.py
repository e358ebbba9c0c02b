"""Interactive prompts on top of a rich Console."""

from collections.abc import Sequence

from rich.console import Console
from rich.markup import escape


def prompt(console: Console, question: str) -> str:
    """Ask a question and return the stripped answer."""
    return console.input(f"[bold]{escape(question)}[/bold]").strip()


def prompt_secret(console: Console, question: str) -> str:
    """Ask for a value without echoing it (passwords)."""
    return console.input(f"[bold]{escape(question)}[/bold]", password=True).strip()


def confirm(console: Console, question: str) -> bool:
    """Yes/no question defaulting to no."""
    answer = prompt(console, f"{question} (y/N) ").lower()
    return answer in ("y", "yes")


def select(
    console: Console,
    question: str,
    options: Sequence[tuple[str, str]],
) -> str:
    """Numbered single choice.

    Args:
        console: Console to prompt on.
        question: Heading printed above the options.
        options: (label, value) pairs.

    Returns:
        The value of the chosen option.

    Raises:
        ValueError: If the answer is not a listed number.
    """
    console.print(question)
    for i, (label, _value) in enumerate(options, 1):
        console.print(f"  [bold]{i}[/bold]) {escape(label)}")

    answer = prompt(console, "Select: ")
    try:
        index = int(answer) - 1
    except ValueError:
        raise ValueError("Invalid selection") from None
    if 0 <= index < len(options):
        return options[index][1]
    raise ValueError("Invalid selection")
