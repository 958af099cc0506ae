# tests/unit/test_tools/test_ied_server_cli.py
"""
Unit tests for the ied_server entry point.

Covers argument parsing, the stderr messages and the exit codes for each
start-up failure, and a clean run through shutdown.
"""

import io
import socket
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from iedbridge.diagnostics import DiagnosticChannel
from iedbridge.runtime import RuntimeContext
from tools.ied_server import (
    EXIT_CREATE_FAILED,
    EXIT_OK,
    EXIT_START_FAILED,
    create_parser,
    main,
)

# ================================================================
# FIXTURES
# ================================================================


@pytest.fixture
def no_signals():
    """Skip signal installation and return from the shutdown wait at once."""
    with patch.object(
        RuntimeContext, "install_signal_handlers", MagicMock()
    ), patch.object(RuntimeContext, "wait_for_shutdown", AsyncMock()):
        yield


@pytest.fixture
def diag_out():
    return io.StringIO()


async def run_main(argv, diag_out):
    return await main(
        argv, stdin=io.StringIO(""), diagnostics=DiagnosticChannel(diag_out)
    )


# ================================================================
# ARGUMENT PARSING
# ================================================================


class TestParser:
    def test_defaults(self):
        args = create_parser().parse_args([])

        assert args.port is None
        assert args.config_dir == "config"
        assert args.model is None
        assert args.log_dir is None

    def test_positional_port(self):
        assert create_parser().parse_args(["10102"]).port == 10102

    def test_non_numeric_port_rejected(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            create_parser().parse_args(["eighty"])

        assert exc_info.value.code == 2


# ================================================================
# RUN
# ================================================================


class TestMain:
    """Test main() exit codes and output."""

    @pytest.mark.asyncio
    async def test_clean_run(self, temp_config_dir, diag_out, no_signals):
        code = await run_main(["0", "--config-dir", str(temp_config_dir)], diag_out)

        assert code == EXIT_OK
        lines = diag_out.getvalue().splitlines()
        assert set(lines[:5]) == {
            "Registered control handler for Device/LLN0.Mod",
            "Registered control handler for Device/XCBR1.Pos",
            "Registered control handler for Device/XCBR1.BlkOpn",
            "Registered control handler for Device/XCBR1.BlkCls",
            "Registered control handler for Device/CSWI1.Pos",
        }
        assert lines[5] == "Registered 5 controllable data object handlers"
        assert lines[6].startswith("IEC 61850 server started on port ")
        assert (temp_config_dir / "model.yml").exists()

    @pytest.mark.asyncio
    async def test_unreadable_model(self, tmp_path, diag_out, capsys, no_signals):
        bad_model = tmp_path / "bad.yml"
        bad_model.write_text("logical_devices: [\n")

        code = await run_main(
            ["0", "--config-dir", str(tmp_path), "--model", str(bad_model)], diag_out
        )

        assert code == EXIT_CREATE_FAILED
        assert "Failed to create IEC 61850 server" in capsys.readouterr().err
        assert diag_out.getvalue() == ""

    @pytest.mark.asyncio
    async def test_missing_model(self, tmp_path, diag_out, capsys, no_signals):
        code = await run_main(
            ["0", "--config-dir", str(tmp_path), "--model", str(tmp_path / "x.yml")],
            diag_out,
        )

        assert code == EXIT_CREATE_FAILED
        assert "Failed to create IEC 61850 server" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_invalid_config(
        self, temp_config_dir, write_yaml, diag_out, capsys, no_signals
    ):
        write_yaml(temp_config_dir / "server.yml", {"bridge": {"strategy": "guess"}})

        code = await run_main(["0", "--config-dir", str(temp_config_dir)], diag_out)

        assert code == EXIT_CREATE_FAILED
        assert "Failed to create IEC 61850 server" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_registration_failure(
        self, temp_config_dir, write_yaml, diag_out, capsys, no_signals
    ):
        """Test that a fatal growth failure exits with code 1.

        WHY: A server with a partial set of handlers must not start.
        """
        write_yaml(temp_config_dir / "server.yml", {"registry": {"capacity": 1}})

        code = await run_main(["0", "--config-dir", str(temp_config_dir)], diag_out)

        assert code == EXIT_CREATE_FAILED
        assert "Failed to register control handlers" in capsys.readouterr().err
        assert "server started" not in diag_out.getvalue()

    @pytest.mark.asyncio
    async def test_port_in_use(self, temp_config_dir, diag_out, capsys, no_signals):
        server_file = temp_config_dir / "server.yml"
        server_file.write_text("server:\n  host: 127.0.0.1\n")
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        port = blocker.getsockname()[1]
        try:
            code = await run_main(
                [str(port), "--config-dir", str(temp_config_dir)], diag_out
            )
        finally:
            blocker.close()

        assert code == EXIT_START_FAILED
        assert (
            f"Failed to start IEC 61850 server on port {port}"
            in capsys.readouterr().err
        )
        assert "server started" not in diag_out.getvalue()

    @pytest.mark.asyncio
    async def test_log_dir_option(
        self, temp_config_dir, tmp_path, diag_out, no_signals
    ):
        log_dir = tmp_path / "logs"
        with patch("tools.ied_server.configure_logging") as mock_configure:
            await run_main(
                ["0", "--config-dir", str(temp_config_dir), "--log-dir", str(log_dir)],
                diag_out,
            )

        mock_configure.assert_called_once_with(log_dir=str(log_dir), enable_json=True)

    @pytest.mark.asyncio
    async def test_out_of_range_port(
        self, temp_config_dir, diag_out, capsys, no_signals
    ):
        code = await run_main(["70000", "--config-dir", str(temp_config_dir)], diag_out)

        assert code == EXIT_START_FAILED
        assert (
            "Failed to start IEC 61850 server on port 70000" in capsys.readouterr().err
        )
        assert "server started" not in diag_out.getvalue()
