"""User tables stored as ``name password`` lines in plain text files."""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Iterator, Union

USERS_TABLE = "./data/users_table.txt"
LOGIN_TABLE = "./data/login_table.txt"
ONLINE_TABLE = "./data/online_table.txt"

PathLike = Union[str, Path]


class VerifyResult(enum.IntEnum):
    """Outcome of checking a name and password against a table."""

    MISMATCH = 0
    OK = 1
    NOT_FOUND = 2


def _lines(path: PathLike) -> Iterator[str]:
    with open(path, encoding="utf-8", newline="\n") as table:
        for line in table:
            yield line[:-1] if line.endswith("\n") else line


def _entry(line: str) -> tuple[str, str]:
    fields = line.split()
    username = fields[0] if fields else ""
    password = fields[1] if len(fields) > 1 else ""
    return username, password


def read_table(path: PathLike) -> list[tuple[str, str]]:
    """All ``(name, password)`` entries of a table, in file order."""
    return [_entry(line) for line in _lines(path)]


def is_name_available(client_name: str, path: PathLike = USERS_TABLE) -> bool:
    """True when no entry of the table uses this name."""
    return all(username != client_name for username, _ in read_table(path))


def verify_password(client_name: str, client_pwd: str, path: PathLike = USERS_TABLE) -> VerifyResult:
    """Check a password against the first entry with this name."""
    for username, stored in read_table(path):
        if username == client_name:
            return VerifyResult.OK if stored == client_pwd else VerifyResult.MISMATCH
    return VerifyResult.NOT_FOUND


def append_user(client_name: str, client_pwd: str, path: PathLike) -> None:
    """Append a ``name password`` line to a table."""
    with open(path, "a", encoding="utf-8", newline="\n") as table:
        table.write(f"{client_name} {client_pwd}\n")
    print(f"Successfully added {client_name} to {path}")


def remove_user(client_name: str, client_pwd: str, path: PathLike) -> bool:
    """Drop every line matching both name and password; return whether any matched."""
    kept: list[str] = []
    found = False
    for line in _lines(path):
        if _entry(line) == (client_name, client_pwd):
            found = True
        else:
            kept.append(line)
    if not found:
        print(f"No matching record found for {client_name} in {path}")
        return False
    with open(path, "w", encoding="utf-8", newline="\n") as table:
        table.writelines(f"{line}\n" for line in kept)
    print(f"Successfully removed {client_name} from {path}")
    return True


def print_registered(path: PathLike = USERS_TABLE) -> None:
    """Print every line of the registered-users table."""
    print("Registered Users:")
    for line in _lines(path):
        print(line)


def print_logged_in(path: PathLike = ONLINE_TABLE) -> None:
    """Print every line of the online-users table."""
    print("Logged-in Users:")
    for line in _lines(path):
        print(line)