# tests/test_cli.py
"""
测试命令行入口: 子命令分发与退出码映射。
"""

import io
import os
from unittest.mock import AsyncMock, patch

import pytest

from cvardump import main as cli
from cvardump.config import ENV_MAP, ENV_PREFIX
from cvardump.exceptions import (
    AuthError,
    ConfigError,
    ExitCode,
    ExportError,
    FramingError,
    IncompleteResponseError,
    InputError,
    OperationTimeoutError,
    RconConnectionError,
)
from cvardump.parser import ParseSummary


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """避免读取开发者本地的 .env 和 CVARDUMP_ 环境变量"""
    monkeypatch.chdir(tmp_path)
    for suffix in ENV_MAP.values():
        monkeypatch.delenv(f"{ENV_PREFIX}{suffix}", raising=False)


def test_no_subcommand_prints_help(capsys):
    assert cli.main([]) == ExitCode.OK
    assert "rcon" in capsys.readouterr().out


def test_manual_single_line(tmp_path):
    src = tmp_path / "in.txt"
    src.write_text('sv_cheats : 0 : sv, cheat : "Allow cheats"\n', encoding="utf-8")
    out = tmp_path / "out.csv"

    code = cli.main(["manual", f"--input={src}", f"--output={out}"])

    assert code == ExitCode.OK
    assert out.read_text(encoding="utf-8").splitlines() == [
        "name,value,flags,description",
        'sv_cheats,0,"sv,cheat",Allow cheats',
    ]


def test_manual_empty_input(tmp_path):
    src = tmp_path / "empty.txt"
    src.write_text("", encoding="utf-8")
    out = tmp_path / "out.csv"

    assert cli.main(["manual", "-i", str(src), "-o", str(out)]) == 0
    assert out.read_text(encoding="utf-8").splitlines() == ["name,value,flags,description"]


def test_output_option_before_subcommand(tmp_path):
    src = tmp_path / "in.txt"
    src.write_text("fps_max : 300 : , \"cl\" : Frame rate limiter\n", encoding="utf-8")
    out = tmp_path / "global.csv"

    assert cli.main(["-o", str(out), "manual", "-i", str(src)]) == 0
    assert out.exists()


def test_manual_stdout(tmp_path, capsys):
    src = tmp_path / "in.txt"
    src.write_text("fps_max : 300 : , \"cl\" : Frame rate limiter\n", encoding="utf-8")

    assert cli.main(["manual", "-i", str(src)]) == 0
    assert "fps_max,300,cl,Frame rate limiter" in capsys.readouterr().out


def test_manual_missing_input(tmp_path):
    code = cli.main(["manual", "-i", str(tmp_path / "nope.txt"), "-o", str(tmp_path / "o.csv")])
    assert code == ExitCode.INPUT


def test_manual_unwritable_output(tmp_path):
    src = tmp_path / "in.txt"
    src.write_text("", encoding="utf-8")
    code = cli.main(["manual", "-i", str(src), "-o", str(tmp_path / "no" / "o.csv")])
    assert code == ExitCode.EXPORT


def test_rcon_dispatch(tmp_path):
    out = tmp_path / "out.csv"
    fake = AsyncMock(return_value=ParseSummary(parsed=2))

    with patch("cvardump.main.dump_rcon", fake):
        code = cli.main(["rcon", f"--output={out}", "10.0.0.5:27016", "pw", "--timeout", "9"])

    assert code == ExitCode.OK
    config, output = fake.call_args.args
    assert (config.host, config.port, config.password) == ("10.0.0.5", 27016, "pw")
    assert config.operation_timeout == 9.0
    assert output == str(out)


def test_rcon_password_from_env(monkeypatch):
    monkeypatch.setenv("CVARDUMP_PASSWORD", "from_env")
    fake = AsyncMock(return_value=ParseSummary())

    with patch("cvardump.main.dump_rcon", fake):
        assert cli.main(["rcon", "10.0.0.5"]) == ExitCode.OK

    config = fake.call_args.args[0]
    assert config.password == "from_env"
    assert config.port == 27015


def test_rcon_missing_password():
    assert cli.main(["rcon", "10.0.0.5:27015"]) == ExitCode.CONFIG


@pytest.mark.parametrize(
    "error, expected",
    [
        (RconConnectionError("refused"), ExitCode.CONNECTION),
        (AuthError("bad password"), ExitCode.AUTH),
        (FramingError("short read"), ExitCode.PROTOCOL),
        (IncompleteResponseError("no probe echo"), ExitCode.PROTOCOL),
        (OperationTimeoutError("deadline"), ExitCode.TIMEOUT),
        (ExportError("disk full"), ExitCode.EXPORT),
    ],
)
def test_rcon_error_exit_codes(error, expected):
    with patch("cvardump.main.dump_rcon", AsyncMock(side_effect=error)):
        assert cli.main(["rcon", "10.0.0.5:27015", "pw"]) == expected


def test_exit_codes_are_distinct():
    failures = [c for c in ExitCode if c is not ExitCode.OK]
    assert len({int(c) for c in failures}) == len(failures)
    assert ExitCode.OK not in failures


def test_exit_code_for_unknown_error():
    assert ExitCode.for_error(RuntimeError("boom")) == ExitCode.ERROR
    assert ExitCode.for_error(InputError("x")) == ExitCode.INPUT


def test_no_config_variables_leak_into_cli(monkeypatch):
    assert not [s for s in ENV_MAP.values() if f"{ENV_PREFIX}{s}" in os.environ]
    monkeypatch.setenv(f"{ENV_PREFIX}OPERATION_TIMEOUT", "abc")
    with pytest.raises(ConfigError, match="超时格式无效"):
        cli.load_rcon_config(cli.build_parser().parse_args(["rcon", "h", "pw"]))


def test_manual_stdin_with_invalid_utf8(monkeypatch, tmp_path):
    data = b'sv_cheats : 0 : , "sv" : caf\xe9\n'
    monkeypatch.setattr("sys.stdin", io.TextIOWrapper(io.BytesIO(data), encoding="utf-8"))
    src = tmp_path / "in.txt"
    src.write_bytes(data)

    stdin_out = tmp_path / "stdin.csv"
    file_out = tmp_path / "file.csv"
    assert cli.main(["manual", "-o", str(stdin_out)]) == ExitCode.OK
    assert cli.main(["manual", "-i", str(src), "-o", str(file_out)]) == ExitCode.OK
    assert stdin_out.read_text(encoding="utf-8") == file_out.read_text(encoding="utf-8")
    assert "caf\ufffd" in stdin_out.read_text(encoding="utf-8")
