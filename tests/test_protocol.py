import array
import socket
import struct
import sys
import wave

import pytest

from tlschat.protocol import (
    AUDIO,
    AUDIO_DATA,
    AUDIO_END,
    END_OF_FILE,
    FILEDATA,
    FILE_CHUNK_SIZE,
    NORMAL,
    ConnectionClosedError,
    Message,
    client_ssl_context,
    encode_frame,
    format_message,
    print_message,
    receive_audio,
    receive_file,
    receive_message,
    send_audio,
    send_file,
    send_message,
    server_ssl_context,
)


@pytest.fixture
def pair():
    left, right = socket.socketpair()
    left.settimeout(5)
    right.settimeout(5)
    yield left, right
    left.close()
    right.close()


class RecordingSink:
    def __init__(self):
        self.formats = []
        self.chunks = []
        self.drained = False

    def configure(self, sample_rate, channels):
        self.formats.append((sample_rate, channels))

    def queue(self, data):
        self.chunks.append(data)

    def drain(self):
        self.drained = True


def test_encode_frame_wire_bytes():
    assert encode_frame(NORMAL, "hi") == b"\x00\x00\x00\x09normal:hi"


def test_encode_frame_length_prefix_matches_body():
    frame = encode_frame("filedata", b"\x00\x01\x02")
    (length,) = struct.unpack("!i", frame[:4])
    assert length == len(frame) - 4
    assert frame[4:] == b"filedata:\x00\x01\x02"


def test_round_trip(pair):
    left, right = pair
    send_message(left, NORMAL, "hello")
    assert receive_message(right) == Message(NORMAL, b"hello")


def test_payload_keeps_later_colons(pair):
    left, right = pair
    send_message(left, "message", "[bob] a:b:c")
    received = receive_message(right)
    assert received.identifier == "message"
    assert received.text() == "[bob] a:b:c"


def test_large_payload_round_trip(pair):
    left, right = pair
    payload = bytes(range(256)) * 12
    send_message(left, FILEDATA, payload)
    assert receive_message(right).payload == payload


def test_empty_payload(pair):
    left, right = pair
    send_message(left, END_OF_FILE, "")
    assert receive_message(right) == Message(END_OF_FILE, b"")


def test_body_without_colon_has_empty_identifier(pair):
    left, right = pair
    left.sendall(struct.pack("!i", 5) + b"hello")
    assert receive_message(right) == Message("", b"hello")


def test_closed_connection_raises(pair):
    left, right = pair
    left.close()
    with pytest.raises(ConnectionClosedError):
        receive_message(right)


def test_truncated_body_raises(pair):
    left, right = pair
    left.sendall(struct.pack("!i", 50) + b"normal:short")
    left.close()
    with pytest.raises(ConnectionClosedError):
        receive_message(right)


def test_message_text_decodes_utf8():
    assert Message(NORMAL, "héllo".encode("utf-8")).text() == "héllo"


def test_send_file_chunks(pair, tmp_path):
    left, right = pair
    data = bytes(range(256)) * 12
    source = tmp_path / "data.bin"
    source.write_bytes(data)
    count = send_file(left, source)
    chunks = [receive_message(right) for _ in range(count)]
    assert all(chunk.identifier == FILEDATA for chunk in chunks)
    assert all(len(chunk.payload) <= FILE_CHUNK_SIZE for chunk in chunks)
    assert b"".join(chunk.payload for chunk in chunks) == data
    assert receive_message(right) == Message(END_OF_FILE, b"")


def test_file_round_trip(pair, tmp_path):
    left, right = pair
    data = b"line one\nline two\n" * 100
    source = tmp_path / "in.txt"
    source.write_bytes(data)
    target = tmp_path / "out.txt"
    send_file(left, source)
    assert receive_file(right, target) == len(data)
    assert target.read_bytes() == data


def test_receive_file_stops_on_unexpected_identifier(pair, tmp_path):
    left, right = pair
    send_message(left, FILEDATA, b"abc")
    send_message(left, NORMAL, "oops")
    send_message(left, FILEDATA, b"never")
    target = tmp_path / "out.bin"
    receive_file(right, target)
    assert target.read_bytes() == b"abc"


def test_send_file_missing(pair, tmp_path):
    left, _ = pair
    with pytest.raises(FileNotFoundError):
        send_file(left, tmp_path / "nope.bin")


def test_format_message_server():
    assert format_message("hi", 1) == "\033[1;31m[Server]: hi\033[0m"


def test_format_message_client():
    assert format_message("hi", 2) == "\033[1;33m[Client]: hi\033[0m"


def test_format_message_unknown():
    assert format_message("hi", 9) == "[Unknown]: hi"


def test_print_message(capsys):
    print_message("ready", 1)
    assert capsys.readouterr().out == format_message("ready", 1) + "\n"


def test_send_audio_rejects_other_extensions(pair, tmp_path):
    left, _ = pair
    source = tmp_path / "song.mp3"
    source.write_bytes(b"data")
    with pytest.raises(ValueError):
        send_audio(left, source)


def test_send_audio_rejects_bad_wav(pair, tmp_path):
    left, _ = pair
    source = tmp_path / "broken.wav"
    source.write_bytes(b"not a wave file at all")
    with pytest.raises(ValueError):
        send_audio(left, source)


def _write_wav(path, samples, rate, channels):
    with wave.open(str(path), "wb") as writer:
        writer.setnchannels(channels)
        writer.setsampwidth(2)
        writer.setframerate(rate)
        writer.writeframes(struct.pack(f"<{len(samples)}h", *samples))


def test_audio_round_trip(pair, tmp_path):
    left, right = pair
    samples = [(i * 37) % 2000 - 1000 for i in range(1200)]
    source = tmp_path / "tone.wav"
    _write_wav(source, samples, 22050, 2)
    count = send_audio(left, source)
    sink = RecordingSink()
    assert receive_audio(right, sink) == (22050, 2)
    assert sink.formats == [(22050, 2)]
    assert len(sink.chunks) == count
    assert all(len(chunk) <= 4096 for chunk in sink.chunks)
    assert b"".join(sink.chunks) == array.array("h", samples).tobytes()
    assert sink.drained


def test_send_audio_header(pair, tmp_path):
    left, right = pair
    source = tmp_path / "mono.wav"
    _write_wav(source, [1, 2, 3, 4], 8000, 1)
    send_audio(left, source)
    header = receive_message(right)
    assert header == Message(AUDIO, b"8000,1,mono.wav")
    data = receive_message(right)
    assert data.identifier == AUDIO_DATA
    assert data.payload == array.array("h", [1, 2, 3, 4]).tobytes()
    assert receive_message(right) == Message(AUDIO_END, b"END")


def test_receive_audio_keeps_defaults_for_plain_name(pair):
    left, right = pair
    send_message(left, AUDIO, "song.wav")
    send_message(left, AUDIO, "16000,1,song.wav")
    send_message(left, AUDIO_DATA, b"ab")
    send_message(left, NORMAL, "ignored")
    send_message(left, AUDIO_DATA, b"cd")
    send_message(left, AUDIO_END, "END")
    sink = RecordingSink()
    assert receive_audio(right, sink) == (16000, 1)
    assert sink.formats == [(44100, 2), (16000, 1)]
    assert sink.chunks == [b"ab", b"cd"]
    assert sink.drained


def test_receive_audio_rate_only_keeps_channels(pair):
    left, right = pair
    send_message(left, AUDIO, "48000")
    send_message(left, AUDIO_END, "END")
    sink = RecordingSink()
    assert receive_audio(right, sink) == (48000, 2)


def test_client_ssl_context_missing_ca(tmp_path):
    with pytest.raises(OSError):
        client_ssl_context(tmp_path / "ca.crt")


def test_server_ssl_context_missing_files(tmp_path):
    with pytest.raises(OSError):
        server_ssl_context(tmp_path / "server.crt", tmp_path / "server.key")