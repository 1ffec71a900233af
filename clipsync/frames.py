"""
WebSocket framing (RFC 6455): decoding of client frames and encoding of
unmasked server frames. Pure functions, no I/O.
"""

from typing import NamedTuple, Tuple

from .errors import FrameClosed, FrameIncomplete, FrameInvalid

OP_CONTINUATION = 0x0
OP_TEXT = 0x1
OP_BINARY = 0x2
OP_CLOSE = 0x8
OP_PING = 0x9
OP_PONG = 0xA

CONTROL_OPCODES = (OP_CLOSE, OP_PING, OP_PONG)

MAX_PAYLOAD = 1024 * 1024


class Frame(NamedTuple):
    fin: bool
    opcode: int
    masked: bool
    payload: bytes  # already unmasked


def apply_mask(payload: bytes, mask_key: bytes) -> bytes:
    """
    XOR payload with the 4-byte mask key. The same call masks and unmasks.
    """
    if not payload:
        return b""
    repeated = (mask_key * (len(payload) // 4 + 1))[:len(payload)]
    value = int.from_bytes(payload, "big") ^ int.from_bytes(repeated, "big")
    return value.to_bytes(len(payload), "big")


def parse_frame(buffer: bytes, max_payload: int = MAX_PAYLOAD) -> Tuple[Frame, int]:
    """
    Parse one frame of any opcode from the start of ``buffer``.

    :param buffer: bytes received so far
    :param max_payload: payloads larger than this are rejected
    :return: the frame and the number of bytes it occupied
    :raises FrameIncomplete: the buffer does not yet hold the whole frame
    :raises FrameInvalid: the header can never describe an acceptable frame
    """
    if len(buffer) < 2:
        raise FrameIncomplete()

    first, second = buffer[0], buffer[1]
    fin = bool(first & 0x80)
    opcode = first & 0x0F
    masked = bool(second & 0x80)
    length = second & 0x7F
    offset = 2

    if length == 126:
        if len(buffer) < 4:
            raise FrameIncomplete()
        length = int.from_bytes(buffer[2:4], "big")
        offset = 4
    elif length == 127:
        if len(buffer) < 10:
            raise FrameIncomplete()
        length = int.from_bytes(buffer[2:10], "big")
        if length >> 63:
            raise FrameInvalid("64-bit length with the high bit set")
        offset = 10

    if length > max_payload:
        raise FrameInvalid(f"payload of {length} bytes exceeds {max_payload}")
    if opcode in CONTROL_OPCODES and length > 125:
        raise FrameInvalid(f"control frame 0x{opcode:x} with {length} byte payload")

    mask_key = b""
    if masked:
        if len(buffer) < offset + 4:
            raise FrameIncomplete()
        mask_key = bytes(buffer[offset:offset + 4])
        offset += 4

    end = offset + length
    if len(buffer) < end:
        raise FrameIncomplete()

    payload = bytes(buffer[offset:end])
    if masked:
        payload = apply_mask(payload, mask_key)
    return Frame(fin, opcode, masked, payload), end


def text_of(frame: Frame) -> str:
    """
    Turn a data frame into its text. Close frames raise FrameClosed.
    """
    if frame.opcode == OP_CLOSE:
        raise FrameClosed(frame.payload)
    if frame.opcode != OP_TEXT:
        raise FrameInvalid(f"unsupported opcode 0x{frame.opcode:x}")
    try:
        return frame.payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise FrameInvalid(f"payload is not UTF-8: {exc}") from exc


def decode(buffer: bytes, max_payload: int = MAX_PAYLOAD) -> Tuple[str, int]:
    """
    Decode a single text frame from the start of ``buffer``.

    :return: (message, consumed byte count)
    :raises FrameIncomplete: keep buffering and retry
    :raises FrameInvalid: malformed header, unsupported opcode or bad UTF-8
    :raises FrameClosed: the peer asked to close
    """
    frame, consumed = parse_frame(buffer, max_payload)
    return text_of(frame), consumed


def encode_frame(opcode: int, payload: bytes = b"") -> bytes:
    """
    Build an unmasked, unfragmented server frame.
    """
    length = len(payload)
    header = bytearray([0x80 | (opcode & 0x0F)])
    if length < 126:
        header.append(length)
    elif length < 65536:
        header.append(126)
        header += length.to_bytes(2, "big")
    else:
        header.append(127)
        header += length.to_bytes(8, "big")
    return bytes(header) + payload


def encode(message: str) -> bytes:
    """Encode ``message`` as a single text frame."""
    return encode_frame(OP_TEXT, message.encode("utf-8"))


def close_frame(payload: bytes = b"") -> bytes:
    """Close frame echoing the peer's status code (first two bytes), if any."""
    return encode_frame(OP_CLOSE, payload[:2])
