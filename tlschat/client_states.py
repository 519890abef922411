"""Client-side menus and the state changes driven by server prompts."""

from __future__ import annotations

import enum
import sys
from typing import Optional, TextIO

from tlschat.protocol import (
    AUDIO,
    FILEID,
    MESSAGE,
    NORMAL,
    PROMPT,
    ConnectionClosedError,
    Message,
    print_message,
    receive_message,
    send_audio,
    send_file,
    send_message,
)


class ClientState(enum.IntEnum):
    """Where the client is in its conversation with the server."""

    EXIT = 0
    MAIN_MENU = 1
    REGISTER = 2
    LOGIN = 3
    SERVICE = 4
    CHOOSE_TARGET = 5
    CHATTING = 6
    NOTIFIED = 7


_PROMPTS = {
    4: "Enter operation (1: Chat with someone, 2: Logout, 3: Exit): ",
    5: "Who do you want to chat : ",
    6: (
        "Choose what to send:\n"
        "0. Quit\n"
        "1. Text Message\n"
        "2. File\n"
        "3. Audio\n"
        "Enter your choice: "
    ),
}


def _stream(stream: Optional[TextIO]) -> TextIO:
    return sys.stdin if stream is None else stream


def _read_token(stream: TextIO) -> str:
    """Read one whitespace-delimited word, consuming the character that ends it."""
    char = stream.read(1)
    while char and char.isspace():
        char = stream.read(1)
    token = []
    while char and not char.isspace():
        token.append(char)
        char = stream.read(1)
    return "".join(token)


def _read_line(stream: TextIO) -> str:
    line = stream.readline()
    return line[:-1] if line.endswith("\n") else line


def _ask(text: str) -> None:
    print(text, end="", flush=True)


def _receive(conn) -> Message:
    try:
        return receive_message(conn)
    except ConnectionClosedError:
        return Message("", b"")


def check_message(message: Message, status: int) -> int:
    """Return 0 for a message with an empty identifier or payload, otherwise the status."""
    if not message.identifier or not message.payload:
        print("Error: Received an empty message.", file=sys.stderr)
        return 0
    return status


def client_main_menu(conn, status: int, stream: Optional[TextIO] = None) -> int:
    """Ask for register, login or exit, tell the server, and return the next state."""
    source = _stream(stream)
    _ask("Enter operation (1: Register, 2: Login, 3: Exit): ")
    op = _read_token(source)
    if op == "1":
        message_to_server = f"{op} I want to register!!"
        result = int(ClientState.REGISTER)
    elif op == "2":
        message_to_server = f"{op} I want to login!!"
        result = int(ClientState.LOGIN)
    elif op == "3":
        message_to_server = f"{op} I want to exit!!"
        result = int(ClientState.EXIT)
    else:
        print("Unknown operation.")
        message_to_server = ""
        result = int(ClientState.MAIN_MENU)
    send_message(conn, NORMAL, message_to_server)
    response = _receive(conn)
    result = check_message(response, result)
    if not result:
        print("Server break!")
        return ClientState.EXIT
    print_message(response.text(), 1)
    return ClientState(result)


def client_auth_process(conn, status: int, stream: Optional[TextIO] = None) -> ClientState:
    """Send a name and password; return SERVICE after a login, otherwise MAIN_MENU."""
    source = _stream(stream)
    _ask("Input your name: ")
    name = _read_token(source)
    _ask("Input your password: ")
    secret_word = _read_token(source)
    send_message(conn, NORMAL, name)
    send_message(conn, NORMAL, secret_word)
    response = _receive(conn)
    if not check_message(response, status):
        print("Server break!")
        return ClientState.EXIT
    text = response.text()
    print_message(text, 1)
    if text == "login success!!":
        return ClientState.SERVICE
    return ClientState.MAIN_MENU


def client_service_menu(conn, status: int, stream: Optional[TextIO] = None) -> None:
    """Read a service choice and send it to the server as a prompt message."""
    op = _read_token(_stream(stream))
    if op == "1":
        message_to_server = f"{op} I want to chat with someone!!"
    elif op == "2":
        message_to_server = f"{op} I want to logout!!"
    elif op == "3":
        message_to_server = f"{op} I want to exit!!"
    else:
        print("Unknown operation.")
        message_to_server = ""
    send_message(conn, PROMPT, message_to_server)


def chat_some(conn, stream: Optional[TextIO] = None) -> None:
    """Read the name of the user to chat with and send it."""
    send_message(conn, NORMAL, _read_token(_stream(stream)))


def chat_and_send_data(conn, stream: Optional[TextIO] = None) -> None:
    """Read what to send (text, file or audio) and send it."""
    source = _stream(stream)
    choice = _read_token(source)
    send_message(conn, NORMAL, choice)
    if choice == "1":
        _ask("Input your message: ")
        send_message(conn, MESSAGE, _read_line(source))
    elif choice == "2":
        _ask("Input your file path: ")
        file_path = _read_line(source)
        send_message(conn, FILEID, f"I will send {file_path}")
        try:
            send_file(conn, file_path)
        except OSError:
            print(f"Failed to open file: {file_path}", file=sys.stderr)
            return
        print("File sent successfully!")
    elif choice == "3":
        _ask("Input your audio path: ")
        file_path = _read_line(source)
        send_message(conn, AUDIO, f"I will send {file_path}")
        print("You need to wait for audio playback finishing")
        try:
            send_audio(conn, file_path)
        except (OSError, ValueError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return
        print("Audio send successfully!")


def msg_status_change(msg: str, status: int) -> ClientState:
    """The state a server prompt moves the client to."""
    if status in (4, 7):
        if msg == "OK We will help you to chat with your friends!!":
            return ClientState.CHOOSE_TARGET
        if msg == "OK we will help you logout!!":
            return ClientState.MAIN_MENU
        if msg == "OK bye!!":
            return ClientState.EXIT
        if msg == "Unknown command":
            return ClientState.SERVICE
    if status in (5, 7):
        if msg == "Target user is not online.":
            return ClientState.SERVICE
        if msg == "Target user is online.":
            return ClientState.CHATTING
    if status in (6, 7) and msg == "0":
        return ClientState.SERVICE
    return ClientState.CHATTING


def prompt_text(status: int) -> str:
    """The prompt shown to the user in a state, or an empty string."""
    return _PROMPTS.get(int(status), "")


def print_prompt(status: int) -> None:
    """Show the prompt for a state without a trailing newline."""
    _ask(prompt_text(status))