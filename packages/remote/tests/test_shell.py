"""shell 工具单元测试"""

import pytest

from fleetctl.remote import quote_remote_path
from fleetctl.remote.shell import run_process


class TestQuoteRemotePath:
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("~", '"$HOME"'),
            ("~/.openclaw/.env", '"$HOME"/.openclaw/.env'),
            ("~/my dir/file", "\"$HOME\"/'my dir/file'"),
            ("/srv/agent", "/srv/agent"),
            ("/tmp/a;rm -rf", "'/tmp/a;rm -rf'"),
        ],
    )
    def test_quoting(self, path: str, expected: str):
        assert quote_remote_path(path) == expected


class TestRunProcess:
    async def test_shell_command_output(self):
        result = await run_process(shell_command="echo hello; echo oops >&2; exit 3")
        assert result.stdout == "hello\n"
        assert result.stderr == "oops\n"
        assert result.exit_code == 3
        assert not result.ok

    async def test_argv_with_stdin(self):
        result = await run_process(["cat"], stdin_text="piped")
        assert result.ok
        assert result.stdout == "piped"

    async def test_timeout_kills_process(self):
        with pytest.raises(TimeoutError):
            await run_process(shell_command="sleep 5", timeout_s=0.2)

    async def test_requires_command(self):
        with pytest.raises(ValueError):
            await run_process()
