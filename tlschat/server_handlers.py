"""Server-side state handlers and the registry of connected clients."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Dict, Hashable, Optional, Tuple, Union

from tlschat.auth import (
    LOGIN_TABLE,
    USERS_TABLE,
    VerifyResult,
    append_user,
    is_name_available,
    remove_user,
    verify_password,
)
from tlschat.client_states import ClientState
from tlschat.protocol import (
    AUDIO,
    AUDIO_DATA,
    AUDIO_END,
    END_OF_FILE,
    FILEDATA,
    FILEID,
    MESSAGE,
    NORMAL,
    PROMPT,
    ConnectionClosedError,
    Message,
    receive_message,
    send_message,
)

__all__ = [
    "ServerRegistry",
    "parse_file_name",
    "check_message",
    "handle_client_menu",
    "handle_client_register",
    "handle_client_login",
    "handle_client_serve",
    "handle_chat_serve",
    "handle_text_message",
    "handle_send_file",
    "handle_send_audio",
    "handle_send_data",
]

PathLike = Union[str, Path]

_SEND_PREFIX = "I will send "
_OFFLINE = "Message could not be delivered. Target user went offline."
_SEND_MENU = (
    "Choose what to send:\n"
    "0. quit\n"
    "1. Text Message\n"
    "2. File\n"
    "3. Audio\n"
    "Enter your choice: "
)


class ServerRegistry:
    """Thread-safe tables of client states and of logged-in users' connections."""

    def __init__(self) -> None:
        self._status: Dict[Hashable, int] = {}
        self._users: Dict[str, Any] = {}
        self._status_lock = threading.Lock()
        self._users_lock = threading.Lock()

    def update_status(self, conn: Hashable, status: int) -> None:
        """Record the state of a connection."""
        with self._status_lock:
            self._status[conn] = status

    def get_status(self, conn: Hashable) -> int:
        """The recorded state of a connection; 0 if none was recorded."""
        with self._status_lock:
            return self._status.get(conn, 0)

    def remove_client(self, conn: Hashable) -> None:
        """Forget a connection's state."""
        with self._status_lock:
            self._status.pop(conn, None)

    def register_user(self, conn: Any, client_name: str) -> None:
        """Map a user name to its connection."""
        with self._users_lock:
            self._users[client_name] = conn

    def user_connection(self, client_name: str) -> Optional[Any]:
        """The connection of a logged-in user, or None."""
        with self._users_lock:
            return self._users.get(client_name)

    def remove_user(self, client_name: str) -> None:
        """Forget a user's connection."""
        with self._users_lock:
            self._users.pop(client_name, None)

    def is_online(self, client_name: str) -> bool:
        """True when the user has a registered connection."""
        return self.user_connection(client_name) is not None


def parse_file_name(send_message: str) -> str:
    """The file name from an ``I will send <path>`` message, or "" if the prefix is missing."""
    start = send_message.find(_SEND_PREFIX)
    if start < 0:
        print(f"Invalid message format: {send_message}", file=sys.stderr)
        return ""
    file_path = send_message[start + len(_SEND_PREFIX):]
    separator = max(file_path.rfind("/"), file_path.rfind("\\"))
    return file_path[separator + 1:] if separator >= 0 else file_path


def check_message(message: Message, status: int) -> int:
    """Return 0 for a message with an empty identifier or payload, else ``status``."""
    if not message.identifier or not message.payload:
        print("Error: Received an empty message.", file=sys.stderr)
        return 0
    return status


def _receive(conn) -> Message:
    try:
        return receive_message(conn)
    except ConnectionClosedError:
        return Message("", b"")


def handle_client_menu(message: str, conn) -> ClientState:
    """Answer a main-menu choice and return the client's next state."""
    op = message[:1]
    if op == "1":
        send_message(conn, NORMAL, "OK We will help you register!!")
        return ClientState.REGISTER
    if op == "2":
        send_message(conn, NORMAL, "OK We will help you login!!")
        return ClientState.LOGIN
    if op == "3":
        send_message(conn, NORMAL, "OK bye!!")
        return ClientState.EXIT
    send_message(conn, NORMAL, "Unknown command")
    return ClientState.MAIN_MENU


def handle_client_register(
    client_name: str, client_pwd: str, conn, users_table: PathLike = USERS_TABLE
) -> ClientState:
    """Register a new user if the name is free; always return to the main menu."""
    try:
        available = is_name_available(client_name, users_table)
    except OSError:
        print(f"Failed to open {users_table}", file=sys.stderr)
        available = False
    if available:
        append_user(client_name, client_pwd, users_table)
        print(f"Client ({client_name}) registered successfully.")
        send_message(conn, NORMAL, "Register success!!")
    else:
        print(
            f"Error: Registration failed for ({client_name}) - Name already used.",
            file=sys.stderr,
        )
        send_message(conn, NORMAL, f"Fail to register:( {client_name} has been used!!")
    return ClientState.MAIN_MENU


def handle_client_login(
    client_name: str,
    client_pwd: str,
    conn,
    users_table: PathLike = USERS_TABLE,
    login_table: PathLike = LOGIN_TABLE,
) -> ClientState:
    """Check credentials; on success record the login and enter the service state."""
    try:
        result = verify_password(client_name, client_pwd, users_table)
    except OSError:
        print(f"Failed to open {users_table}", file=sys.stderr)
        result = None
    if result == VerifyResult.OK:
        append_user(client_name, client_pwd, login_table)
        print(f"Client ({client_name}) logged in successfully.")
        send_message(conn, PROMPT, "login success!!")
        return ClientState.SERVICE
    if result == VerifyResult.NOT_FOUND:
        print(f"Error: Login failed for ({client_name}) - User not found.", file=sys.stderr)
        send_message(conn, PROMPT, f"Fail to login:( We cannot find {client_name}")
        return ClientState.MAIN_MENU
    print(f"Error: Login failed for ({client_name}) - Password mismatch.", file=sys.stderr)
    send_message(conn, PROMPT, "Password not match!")
    return ClientState.MAIN_MENU


def _drop_login(client_name: str, client_pwd: str, login_table: PathLike) -> None:
    try:
        remove_user(client_name, client_pwd, login_table)
    except OSError:
        print(f"Failed to open file: {login_table}", file=sys.stderr)


def handle_client_serve(
    message: str,
    client_name: str,
    client_pwd: str,
    conn,
    login_table: PathLike = LOGIN_TABLE,
) -> ClientState:
    """Answer a service-menu choice and return the client's next state."""
    op = message[:1]
    if op == "1":
        send_message(conn, PROMPT, "OK We will help you to chat with your friends!!")
        return ClientState.CHOOSE_TARGET
    if op == "2":
        _drop_login(client_name, client_pwd, login_table)
        send_message(conn, PROMPT, "OK we will help you logout!!")
        return ClientState.MAIN_MENU
    if op == "3":
        _drop_login(client_name, client_pwd, login_table)
        send_message(conn, PROMPT, "OK bye!!")
        return ClientState.EXIT
    send_message(conn, PROMPT, "Unknown command\n")
    return ClientState.SERVICE


def handle_chat_serve(conn, registry: ServerRegistry) -> Tuple[ClientState, Optional[str]]:
    """Ask who to chat with; return the next state and the target when online."""
    send_message(conn, NORMAL, "Who do you want to chat : ")
    reply = _receive(conn)
    if check_message(reply, 1) == 0:
        return ClientState.SERVICE, None
    target = reply.text()
    if not registry.is_online(target):
        send_message(conn, PROMPT, "Target user is not online.")
        return ClientState.CHOOSE_TARGET, None
    send_message(conn, PROMPT, "Target user is online.")
    return ClientState.CHATTING, target


def handle_text_message(sender: str, receiver: str, conn, registry: ServerRegistry) -> ClientState:
    """Relay one text message from the sender to the receiver."""
    incoming = _receive(conn)
    receiver_conn = registry.user_connection(receiver)
    if receiver_conn is None:
        send_message(conn, PROMPT, _OFFLINE)
        return ClientState.CHOOSE_TARGET
    send_message(receiver_conn, MESSAGE, f"[{sender}] ".encode("utf-8") + incoming.payload)
    send_message(conn, NORMAL, "Message sent successfully!")
    registry.update_status(receiver_conn, ClientState.NOTIFIED)
    return ClientState.CHOOSE_TARGET


def handle_send_file(sender: str, receiver: str, conn, registry: ServerRegistry) -> ClientState:
    """Relay a file transfer from the sender to the receiver."""
    header = _receive(conn)
    if header.identifier != FILEID:
        send_message(conn, PROMPT, "Invalid file transfer protocol.")
        return ClientState.CHOOSE_TARGET
    file_name = parse_file_name(header.text())
    if not file_name:
        send_message(conn, PROMPT, "Failed to parse file name.")
        return ClientState.CHOOSE_TARGET
    receiver_conn = registry.user_connection(receiver)
    if receiver_conn is None:
        send_message(conn, PROMPT, _OFFLINE)
        return ClientState.CHOOSE_TARGET
    send_message(receiver_conn, FILEID, file_name)
    chunk_count = 0
    while True:
        chunk = receive_message(conn)
        if chunk.identifier == END_OF_FILE:
            send_message(receiver_conn, END_OF_FILE, "end!")
            break
        send_message(receiver_conn, FILEDATA, chunk.payload)
        chunk_count += 1
    print(f"File transfer completed: {chunk_count} chunks sent.")
    registry.update_status(receiver_conn, ClientState.NOTIFIED)
    return ClientState.CHOOSE_TARGET


def handle_send_audio(sender: str, receiver: str, conn, registry: ServerRegistry) -> ClientState:
    """Relay an audio stream from the sender to the receiver."""
    receiver_conn = registry.user_connection(receiver)
    if receiver_conn is None:
        send_message(conn, PROMPT, "Audio could not be delivered. Target user went offline.")
        return ClientState.CHOOSE_TARGET
    header = _receive(conn)
    if header.identifier != AUDIO:
        send_message(conn, PROMPT, "Invalid audio stream protocol.")
        return ClientState.CHOOSE_TARGET
    audio_path = parse_file_name(header.text())
    if not audio_path:
        send_message(conn, PROMPT, "Failed to parse audio file path.")
        return ClientState.CHOOSE_TARGET
    send_message(receiver_conn, AUDIO, audio_path)
    meta = _receive(conn)
    if meta.identifier != AUDIO:
        send_message(conn, PROMPT, f"{meta.identifier} Invalid audio metadata protocol.")
        return ClientState.CHOOSE_TARGET
    send_message(receiver_conn, AUDIO, meta.payload)
    chunk_count = 0
    while True:
        chunk = receive_message(conn)
        if chunk.identifier == AUDIO_END and chunk.payload == b"END":
            send_message(receiver_conn, AUDIO_END, "END")
            break
        if chunk.identifier == AUDIO_DATA:
            send_message(receiver_conn, AUDIO_DATA, chunk.payload)
            chunk_count += 1
        else:
            print(
                f"Unexpected message type during audio streaming: {chunk.identifier}",
                file=sys.stderr,
            )
            break
    print(f"Audio streaming completed: {chunk_count} frames sent.")
    registry.update_status(receiver_conn, ClientState.NOTIFIED)
    return ClientState.CHOOSE_TARGET


def handle_send_data(
    client_name: str, conn, target_name: str, registry: ServerRegistry
) -> ClientState:
    """Offer the send menu, carry out the choice and return the client's next state."""
    send_message(conn, NORMAL, _SEND_MENU)
    choice = _receive(conn).payload[:1]
    if choice == b"0":
        send_message(conn, PROMPT, "0")
        return ClientState.SERVICE
    if choice == b"1":
        handle_text_message(client_name, target_name, conn, registry)
    elif choice == b"2":
        handle_send_file(client_name, target_name, conn, registry)
    elif choice == b"3":
        handle_send_audio(client_name, target_name, conn, registry)
    else:
        send_message(conn, NORMAL, "This feature is not implemented yet.")
        send_message(conn, PROMPT, "-1")
    return ClientState.CHATTING