"""Tests for ``python -m kvminstall``."""

from __future__ import annotations

import runpy
from unittest.mock import patch

import pytest

pytest.importorskip("libvirt")


def test_module_exits_with_cli_status():
    with patch("kvminstall.cli.main", return_value=7) as mock_main:
        with pytest.raises(SystemExit) as exc:
            runpy.run_module("kvminstall.__main__", run_name="__main__")
    assert exc.value.code == 7
    mock_main.assert_called_once_with()
