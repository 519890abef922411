import pytest

from tlschat.auth import (
    VerifyResult,
    append_user,
    is_name_available,
    print_logged_in,
    print_registered,
    read_table,
    remove_user,
    verify_password,
)


@pytest.fixture
def users(tmp_path):
    path = tmp_path / "users_table.txt"
    path.write_text("alice password\nbob secret\n", encoding="utf-8")
    return path


def test_read_table(users):
    assert read_table(users) == [("alice", "password"), ("bob", "secret")]


def test_read_table_short_lines(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("carol\n\n", encoding="utf-8")
    assert read_table(path) == [("carol", ""), ("", "")]


def test_is_name_available(users):
    assert is_name_available("carol", users)
    assert not is_name_available("alice", users)
    assert not is_name_available("bob", users)


def test_verify_password_results(users):
    assert verify_password("alice", "password", users) is VerifyResult.OK
    assert verify_password("alice", "secret", users) is VerifyResult.MISMATCH
    assert verify_password("carol", "password", users) is VerifyResult.NOT_FOUND


def test_verify_password_uses_first_entry(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("alice password\nalice secret\n", encoding="utf-8")
    assert verify_password("alice", "secret", path) is VerifyResult.MISMATCH


def test_verify_result_values_match_codes(users):
    codes = [
        int(verify_password("alice", "secret", users)),
        int(verify_password("alice", "password", users)),
        int(verify_password("carol", "password", users)),
    ]
    assert codes == [0, 1, 2]


def test_missing_table_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        verify_password("alice", "password", tmp_path / "none.txt")
    with pytest.raises(FileNotFoundError):
        is_name_available("alice", tmp_path / "none.txt")


def test_append_user(users, capsys):
    append_user("carol", "token", users)
    assert read_table(users)[-1] == ("carol", "token")
    assert verify_password("carol", "token", users) is VerifyResult.OK
    assert f"Successfully added carol to {users}" in capsys.readouterr().out


def test_append_user_creates_file(tmp_path):
    path = tmp_path / "login_table.txt"
    append_user("alice", "password", path)
    assert path.read_text(encoding="utf-8") == "alice password\n"


def test_remove_user(users, capsys):
    assert remove_user("alice", "password", users)
    assert read_table(users) == [("bob", "secret")]
    assert f"Successfully removed alice from {users}" in capsys.readouterr().out


def test_remove_user_requires_password_match(users, capsys):
    before = users.read_text(encoding="utf-8")
    assert not remove_user("alice", "secret", users)
    assert users.read_text(encoding="utf-8") == before
    assert "No matching record found for alice" in capsys.readouterr().out


def test_remove_user_drops_all_matches(tmp_path):
    path = tmp_path / "t.txt"
    path.write_text("alice password\nbob secret\nalice password\n", encoding="utf-8")
    assert remove_user("alice", "password", path)
    assert path.read_text(encoding="utf-8") == "bob secret\n"


def test_append_then_remove_round_trip(users):
    before = read_table(users)
    append_user("dave", "placeholder", users)
    remove_user("dave", "placeholder", users)
    assert read_table(users) == before


def test_print_registered(users, capsys):
    print_registered(users)
    assert capsys.readouterr().out == "Registered Users:\nalice password\nbob secret\n"


def test_print_logged_in(tmp_path, capsys):
    path = tmp_path / "online_table.txt"
    path.write_text("bob secret\n", encoding="utf-8")
    print_logged_in(path)
    assert capsys.readouterr().out == "Logged-in Users:\nbob secret\n"