"""Little-endian integer reads over notification payloads."""


def _window(data: bytes, offset: int, width: int) -> bytes | None:
    if offset < 0 or offset + width > len(data):
        return None
    return bytes(data[offset:offset + width])


def read_uint16_le(data: bytes, offset: int) -> int | None:
    """Read an unsigned 16-bit word, or None if it runs past the buffer."""
    window = _window(data, offset, 2)
    if window is None:
        return None
    return int.from_bytes(window, "little")


def read_uint32_le(data: bytes, offset: int) -> int | None:
    """Read an unsigned 32-bit word, or None if it runs past the buffer."""
    window = _window(data, offset, 4)
    if window is None:
        return None
    return int.from_bytes(window, "little")


def read_int16_le(data: bytes, offset: int) -> int | None:
    """Read a signed 16-bit word, or None if it runs past the buffer."""
    window = _window(data, offset, 2)
    if window is None:
        return None
    return int.from_bytes(window, "little", signed=True)
