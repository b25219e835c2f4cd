"""
Formatting utilities.
"""


def format_progress(step: int, total: int) -> str:
    """
    Format the step progress indicator.

    Args:
        step: Current step (1-based).
        total: Number of steps.

    Returns:
        Progress text, e.g. "Paso 2 de 4".
    """
    return f"Paso {step} de {total}"


def format_yes_no(value: bool) -> str:
    """Format a boolean as "Sí" / "No"."""
    return "Sí" if value else "No"
