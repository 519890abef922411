from datetime import datetime

from tlschat.logs import write_error_log, write_log

STAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def _split_line(line):
    assert line.startswith("[")
    stamp, rest = line[1:].split("] ", 1)
    return stamp, rest


def test_write_log_line_format(tmp_path):
    path = tmp_path / "Log.log"
    write_log("server started", path)
    content = path.read_text(encoding="utf-8")
    stamp, rest = _split_line(content)
    assert rest == "INFO: server started\n"
    assert datetime.strptime(stamp, STAMP_FORMAT).strftime(STAMP_FORMAT) == stamp


def test_write_error_log_line_format(tmp_path):
    path = tmp_path / "Log.log"
    write_error_log("bind failed", path)
    content = path.read_text(encoding="utf-8")
    stamp, rest = _split_line(content)
    assert rest == "ERROR: bind failed\n"
    assert datetime.strptime(stamp, STAMP_FORMAT).strftime(STAMP_FORMAT) == stamp


def test_logs_append(tmp_path):
    path = tmp_path / "Log.log"
    write_log("first", path)
    write_error_log("second", path)
    write_log("third", path)
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 3
    assert lines[0].endswith("INFO: first")
    assert lines[1].endswith("ERROR: second")
    assert lines[2].endswith("INFO: third")


def test_write_log_unopenable_reports(tmp_path, capsys):
    path = tmp_path / "missing" / "Log.log"
    write_log("lost", path)
    assert f"Failed to write log to {path}" in capsys.readouterr().err
    assert not path.exists()


def test_write_error_log_unopenable_reports(tmp_path, capsys):
    path = tmp_path / "missing" / "Log.log"
    write_error_log("lost", path)
    assert f"Failed to write error log to {path}" in capsys.readouterr().err