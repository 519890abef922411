"""Length-prefixed message framing over stream connections, with file and audio transfer."""

from __future__ import annotations

import array
import re
import socket
import ssl
import struct
import sys
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Union

PROMPT = "prompt"
MESSAGE = "message"
NORMAL = "normal"
FILEID = "fileid"
END_OF_FILE = "end_of_file"
FILEDATA = "filedata"
AUDIO = "audio"
AUDIO_DATA = "audio_data"
AUDIO_END = "audio_end"

DEFAULT_SAMPLE_RATE = 44100
DEFAULT_CHANNELS = 2
FILE_CHUNK_SIZE = 2048
AUDIO_CHUNK_BYTES = 4096

_LENGTH = struct.Struct("!i")
_READ_SIZE = 1024
_AUDIO_FORMAT = re.compile(r"\s*([+-]?\d+)(?:,\s*([+-]?\d+))?")

_RED = "\033[1;31m"
_YELLOW = "\033[1;33m"
_RESET = "\033[0m"

Payload = Union[str, bytes]


class ConnectionClosedError(ConnectionError):
    """The peer closed the connection before a whole frame arrived."""


@dataclass(frozen=True)
class Message:
    """One framed message: an identifier and its raw payload."""

    identifier: str
    payload: bytes = b""

    def text(self) -> str:
        """The payload decoded as UTF-8."""
        return self.payload.decode("utf-8", errors="replace")


class _AudioSink(Protocol):
    def configure(self, sample_rate: int, channels: int) -> None: ...

    def queue(self, data: bytes) -> None: ...

    def drain(self) -> None: ...


def _to_bytes(payload: Payload) -> bytes:
    return payload.encode("utf-8") if isinstance(payload, str) else bytes(payload)


def encode_frame(identifier: str, payload: Payload) -> bytes:
    """Build the wire form: a big-endian 32-bit length, then ``identifier:payload``."""
    body = identifier.encode("utf-8") + b":" + _to_bytes(payload)
    return _LENGTH.pack(len(body)) + body


def send_message(conn: socket.socket, identifier: str, payload: Payload) -> None:
    """Send one framed message."""
    conn.sendall(encode_frame(identifier, payload))


def _recv_exact(conn: socket.socket, size: int, what: str) -> bytes:
    buffer = bytearray()
    while len(buffer) < size:
        chunk = conn.recv(min(size - len(buffer), _READ_SIZE))
        if not chunk:
            raise ConnectionClosedError(f"Failed to receive {what}.")
        buffer.extend(chunk)
    return bytes(buffer)


def receive_message(conn: socket.socket) -> Message:
    """Receive one framed message.

    A body without a colon yields a message with an empty identifier and the
    whole body as payload.
    """
    (length,) = _LENGTH.unpack(_recv_exact(conn, _LENGTH.size, "message length"))
    body = _recv_exact(conn, length, "message content") if length > 0 else b""
    identifier, colon, payload = body.partition(b":")
    if not colon:
        return Message("", body)
    return Message(identifier.decode("utf-8", errors="replace"), payload)


def send_file(conn: socket.socket, file_path: Union[str, Path]) -> int:
    """Stream a file as FILEDATA chunks followed by END_OF_FILE; return the chunk count."""
    chunk_count = 0
    with open(file_path, "rb") as source:
        while chunk := source.read(FILE_CHUNK_SIZE):
            send_message(conn, FILEDATA, chunk)
            chunk_count += 1
    send_message(conn, END_OF_FILE, "")
    print(f"File transfer completed: {file_path} ({chunk_count} chunks sent)")
    return chunk_count


def receive_file(conn: socket.socket, output_file: Union[str, Path]) -> int:
    """Write FILEDATA chunks to a file until END_OF_FILE; return the bytes written.

    Any other identifier ends the transfer early.
    """
    written = 0
    with open(output_file, "wb") as target:
        while True:
            chunk = receive_message(conn)
            if chunk.identifier == END_OF_FILE:
                break
            if chunk.identifier != FILEDATA:
                print(f"Unexpected message identifier: {chunk.identifier}", file=sys.stderr)
                break
            target.write(chunk.payload)
            written += len(chunk.payload)
    print(f"File received successfully: {output_file}")
    return written


def format_message(message: str, origin: int) -> str:
    """Colour a message by origin: 1 for the server, 2 for a client."""
    if origin == 1:
        return f"{_RED}[Server]: {message}{_RESET}"
    if origin == 2:
        return f"{_YELLOW}[Client]: {message}{_RESET}"
    return f"[Unknown]: {message}"


def print_message(message: str, origin: int) -> None:
    """Print a message coloured by origin."""
    print(format_message(message, origin))


def server_ssl_context(cert_file: Union[str, Path], key_file: Union[str, Path]) -> ssl.SSLContext:
    """A server TLS context with the given certificate and matching private key."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.load_cert_chain(certfile=str(cert_file), keyfile=str(key_file))
    return context


def client_ssl_context(ca_file: Union[str, Path]) -> ssl.SSLContext:
    """A client TLS context that verifies the peer against the given CA."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.check_hostname = False
    context.verify_mode = ssl.CERT_REQUIRED
    context.load_verify_locations(cafile=str(ca_file))
    return context


def _to_pcm16(raw: bytes, sample_width: int) -> bytes:
    """Convert little-endian PCM samples to native-order signed 16-bit samples."""
    if sample_width == 2:
        out = bytearray(raw)
    elif sample_width == 1:
        out = bytearray(len(raw) * 2)
        out[1::2] = bytes(value ^ 0x80 for value in raw)
    elif sample_width in (3, 4):
        count = len(raw) // sample_width
        out = bytearray(count * 2)
        out[0::2] = raw[sample_width - 2 :: sample_width]
        out[1::2] = raw[sample_width - 1 :: sample_width]
    else:
        raise ValueError(f"Unsupported sample width: {sample_width} bytes")
    if sys.byteorder == "big":
        samples = array.array("h", bytes(out))
        samples.byteswap()
        return samples.tobytes()
    return bytes(out)


def send_audio(conn: socket.socket, file_path: Union[str, Path]) -> int:
    """Stream a .wav file as 16-bit PCM; return the number of data chunks sent.

    Sends an AUDIO header ``rate,channels,filename``, AUDIO_DATA chunks of at
    most 4096 bytes, then AUDIO_END ``END``.
    """
    path = Path(file_path)
    if path.suffix != ".wav":
        raise ValueError(f"Only .wav files are supported. Provided file: {file_path}")
    try:
        reader = wave.open(str(path), "rb")
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"Unable to open WAV file: {file_path}") from exc
    chunk_count = 0
    with reader:
        sample_rate = reader.getframerate()
        channels = reader.getnchannels()
        sample_width = reader.getsampwidth()
        print(f"WAV file sample rate: {sample_rate}, channels: {channels}")
        send_message(conn, AUDIO, f"{sample_rate},{channels},{path.name}")
        frames_per_chunk = max(1, AUDIO_CHUNK_BYTES // 2 // channels)
        while raw := reader.readframes(frames_per_chunk):
            send_message(conn, AUDIO_DATA, _to_pcm16(raw, sample_width))
            chunk_count += 1
    send_message(conn, AUDIO_END, "END")
    print(f"WAV file transmission completed: {file_path}")
    return chunk_count


def _parse_audio_format(text: str, sample_rate: int, channels: int) -> tuple[int, int]:
    match = _AUDIO_FORMAT.match(text)
    if match is None:
        return sample_rate, channels
    sample_rate = int(match.group(1))
    if match.group(2) is not None:
        channels = int(match.group(2))
    return sample_rate, channels


def receive_audio(conn: socket.socket, sink: _AudioSink) -> tuple[int, int]:
    """Feed an incoming audio stream to a sink until AUDIO_END.

    The sink provides ``configure(sample_rate, channels)``, ``queue(data)`` and
    ``drain()``. Every AUDIO message reconfigures it; a header that does not
    start with ``rate,channels`` keeps the current values. Returns the last
    ``(sample_rate, channels)``.
    """
    sample_rate, channels = DEFAULT_SAMPLE_RATE, DEFAULT_CHANNELS
    while True:
        message = receive_message(conn)
        if message.identifier == AUDIO:
            sample_rate, channels = _parse_audio_format(message.text(), sample_rate, channels)
            sink.configure(sample_rate, channels)
        elif message.identifier == AUDIO_DATA:
            sink.queue(message.payload)
        elif message.identifier == AUDIO_END:
            print("Streaming completed.")
            break
    sink.drain()
    return sample_rate, channels