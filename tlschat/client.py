"""Interactive chat client: menus before login, then a loop over server and keyboard input."""

from __future__ import annotations

import array
import select
import ssl
import sys
import wave
from pathlib import Path
from typing import Callable, Optional, TextIO

from tlschat.client_states import (
    ClientState,
    chat_and_send_data,
    chat_some,
    check_message,
    client_auth_process,
    client_main_menu,
    client_service_menu,
    msg_status_change,
    print_prompt,
)
from tlschat.network import NetworkError, connect_to_server
from tlschat.protocol import (
    AUDIO,
    DEFAULT_CHANNELS,
    DEFAULT_SAMPLE_RATE,
    FILEID,
    MESSAGE,
    NORMAL,
    PROMPT,
    ConnectionClosedError,
    Message,
    client_ssl_context,
    print_message,
    receive_audio,
    receive_file,
    receive_message,
)

CA_FILE = "ca.crt"


class _WaveFileSink:
    """Collects a 16-bit PCM stream into a .wav file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._writer: Optional[wave.Wave_write] = None

    def configure(self, sample_rate: int, channels: int) -> None:
        self.drain()
        writer = wave.open(str(self._path), "wb")
        writer.setnchannels(channels)
        writer.setsampwidth(2)
        writer.setframerate(sample_rate)
        self._writer = writer

    def queue(self, data: bytes) -> None:
        if self._writer is None:
            self.configure(DEFAULT_SAMPLE_RATE, DEFAULT_CHANNELS)
        if sys.byteorder == "big":
            samples = array.array("h", data[: len(data) - len(data) % 2])
            samples.byteswap()
            data = samples.tobytes()
        self._writer.writeframes(data)

    def drain(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


def _default_sink(name: str) -> _WaveFileSink:
    return _WaveFileSink(Path(Path(name).name or "audio.wav"))


class ClientSession:
    """One connected client: its state, the state to return to, and its input."""

    def __init__(
        self,
        conn,
        stream: Optional[TextIO] = None,
        sink_factory: Optional[Callable[[str], object]] = None,
        status: int = ClientState.MAIN_MENU,
    ) -> None:
        self.conn = conn
        self.stream = sys.stdin if stream is None else stream
        self.sink_factory = _default_sink if sink_factory is None else sink_factory
        self.status = ClientState(status)
        self.pre_status = ClientState.SERVICE

    def _notify(self) -> None:
        if self.status != ClientState.NOTIFIED:
            self.pre_status = self.status
        self.status = ClientState.NOTIFIED

    def handle_server_message(self, message: Message) -> bool:
        """React to one message from the server; False when it is empty or invalid."""
        if not check_message(message, int(self.status)):
            print("Server disconnected or invalid message received.", file=sys.stderr)
            return False
        text = message.text()
        if message.identifier == NORMAL:
            print(text)
        elif message.identifier == PROMPT:
            print_message(text, 1)
            self.status = msg_status_change(text, int(self.status))
        elif message.identifier == MESSAGE:
            print("\n--- New Message ---")
            print(text)
            print("Press Enter to continue.")
            self._notify()
        elif message.identifier == FILEID:
            print(f"\n New File -> {text}")
            print("Sending file...")
            receive_file(self.conn, Path(text).name)
            print("File received successfully!")
            self._notify()
        elif message.identifier == AUDIO:
            print(f"\n New audio -> {text}")
            print("Sending audio...")
            receive_audio(self.conn, self.sink_factory(text))
            print("Audio received successfully!")
            self._notify()
        return True

    def handle_user_input(self) -> None:
        """Act on what the user typed in the current state."""
        if self.status == ClientState.SERVICE:
            client_service_menu(self.conn, int(self.status), self.stream)
        elif self.status == ClientState.CHOOSE_TARGET:
            chat_some(self.conn, self.stream)
        elif self.status == ClientState.CHATTING:
            chat_and_send_data(self.conn, self.stream)
        elif self.status == ClientState.NOTIFIED:
            self.stream.readline()
            print(
                f"I need to change my status from {int(self.status)} "
                f"to {int(self.pre_status)}"
            )
            self.status = self.pre_status
            print_prompt(self.status)

    def _ready(self) -> tuple[bool, bool]:
        pending = getattr(self.conn, "pending", None)
        buffered = pending is not None and pending() > 0
        timeout = 0 if buffered else None
        readable, _, _ = select.select([self.stream, self.conn], [], [], timeout)
        return buffered or self.conn in readable, self.stream in readable

    def run(self) -> ClientState:
        """Run until the client exits or the server goes away; return the final state."""
        while self.status != ClientState.EXIT:
            if self.status == ClientState.MAIN_MENU:
                self.status = ClientState(client_main_menu(self.conn, int(self.status), self.stream))
                continue
            if self.status in (ClientState.REGISTER, ClientState.LOGIN):
                self.status = ClientState(
                    client_auth_process(self.conn, int(self.status), self.stream)
                )
                continue
            try:
                server_ready, input_ready = self._ready()
            except (OSError, ValueError) as exc:
                print(f"select: {exc}", file=sys.stderr)
                break
            if server_ready:
                try:
                    message = receive_message(self.conn)
                except ConnectionClosedError:
                    message = Message("", b"")
                if not self.handle_server_message(message):
                    break
                if message.identifier == PROMPT:
                    continue
            if input_ready:
                self.handle_user_input()
        return self.status


def main(argv=None) -> int:
    """Connect to a chat server over TLS and run an interactive session."""
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print("Usage: tlschat <hostname or IP> <port>", file=sys.stderr)
        return 1
    hostname, port = args
    try:
        sock = connect_to_server(hostname, port)
    except NetworkError as exc:
        print(exc, file=sys.stderr)
        return 1
    try:
        context = client_ssl_context(CA_FILE)
        conn = context.wrap_socket(sock)
    except (ssl.SSLError, OSError) as exc:
        print(exc, file=sys.stderr)
        sock.close()
        return 1
    with conn:
        try:
            ClientSession(conn).run()
        except OSError as exc:
            print(exc, file=sys.stderr)
        try:
            conn.unwrap()
        except (ssl.SSLError, OSError, ValueError):
            pass
    return 0