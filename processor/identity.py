"""Deterministic numeric identifiers for derived rows."""
import hashlib

ID_HEX_LENGTH = 13  # 52 bits, exact in both bigint and float-backed columns
ID_DELIMITER = '|'


def generate_id(*parts, hex_length: int = ID_HEX_LENGTH) -> int:
    """
    Generate a stable integer ID from the given key parts.

    Parts are joined with ``|`` and hashed with SHA256; the first
    ``hex_length`` hex digits are returned as an integer.

    Args:
        *parts: Key components (converted with ``str``)
        hex_length: Number of hex digits to keep (1-13)

    Returns:
        Integer identifier below 2**52

    Raises:
        ValueError: If no parts are given, the joined key is empty, or
            hex_length is out of range
    """
    if not isinstance(hex_length, int) or not 1 <= hex_length <= ID_HEX_LENGTH:
        raise ValueError(
            f"hex_length must be between 1 and {ID_HEX_LENGTH}, got {hex_length!r}"
        )

    composite = ID_DELIMITER.join(str(part) for part in parts)
    if not composite:
        raise ValueError("Cannot generate an ID from empty input")

    hash_obj = hashlib.sha256(composite.encode('utf-8'))
    return int(hash_obj.hexdigest()[:hex_length], 16)


def compose_event_key(series_id, reservation_id, space_key) -> tuple:
    return (series_id, reservation_id, space_key)


def compose_action_key(event_id, action_type: str, discriminator: str) -> tuple:
    """Key for an action: sub type when it has one, otherwise its start time."""
    return (event_id, action_type, discriminator)
