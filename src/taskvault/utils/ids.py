"""
Identifier generation utilities.
"""

import secrets


def generate_operation_id(length: int = 10) -> str:
    """
    Generate a random undo operation id.

    Args:
        length: Number of hex characters after the prefix (default 10)

    Returns:
        String like "undo-a7f3c29b10"
    """
    return "undo-" + secrets.token_hex((length + 1) // 2)[:length]
