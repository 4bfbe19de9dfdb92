"""CLI 测试 -- python -m chatline.core"""

import sys
from pathlib import Path

import pytest
from chatline.core import __main__ as cli
from chatline.core.store import create_store_group


class TestCli:
    async def test_add_user_and_rebuild(self, tmp_path: Path, monkeypatch, capsys):
        db_path = tmp_path / "cli" / "chatline.db"
        monkeypatch.setenv("CHATLINE_DB_PATH", str(db_path))

        await cli.add_user("alice", "Alice Liddell")
        await cli.rebuild_index()
        assert "共 0 个会话" in capsys.readouterr().out

        group = await create_store_group(str(db_path))
        try:
            assert await group.user_store.get_display_name("alice") == "Alice Liddell"
        finally:
            await group.conn.close()

    def test_usage_without_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["chatline.core"])
        with pytest.raises(SystemExit) as exc_info:
            cli.main()
        assert exc_info.value.code == 1

    def test_unknown_command(self, monkeypatch):
        monkeypatch.setattr(sys, "argv", ["chatline.core", "explode"])
        with pytest.raises(SystemExit):
            cli.main()
