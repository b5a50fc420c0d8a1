from __future__ import annotations

import re
import sys
from unittest.mock import patch

import main


def test_generate_key_prints_usable_session_key(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py", "--generate-key"])
    main.main()
    key = capsys.readouterr().out.strip()
    assert re.fullmatch(r"[A-Za-z0-9_-]{43}", key)


def test_serve_passes_host_and_port(monkeypatch) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py", "--serve", "--host", "127.0.0.1", "--port", "3001"])
    with patch("glogin.api.server.run") as mock_run:
        main.main()
    mock_run.assert_called_once_with(host="127.0.0.1", port=3001)


def test_no_arguments_prints_help(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["main.py"])
    main.main()
    assert "--serve" in capsys.readouterr().out
