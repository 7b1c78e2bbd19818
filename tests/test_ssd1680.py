"""Tests for SSD1680 command sequences and lifecycle."""

from typing import List
from unittest.mock import Mock, patch

import pytest
from PIL import Image

from epd2in13.buffer.packer import unpack
from epd2in13.config import PanelConfig
from epd2in13.drivers import commands as CMD
from epd2in13.drivers.ssd1680 import SSD1680
from epd2in13.drivers.state import DisplayState
from epd2in13.errors import (
    BusyTimeoutError,
    InvalidInputError,
    InvalidStateError,
    TransportError,
)

from .conftest import Rig

INIT_SEQUENCE = [
    (0x12, b""),
    (0x01, bytes([0xF9, 0x00, 0x00])),
    (0x11, bytes([0x03])),
    (0x44, bytes([0x00, 0x0F])),
    (0x45, bytes([0x00, 0x00, 0xF9, 0x00])),
    (0x3C, bytes([0x05])),
    (0x21, bytes([0x00, 0x80])),
]

FULL_REFRESH = [(0x22, bytes([0xF7])), (0x20, b"")]
PARTIAL_REFRESH = [(0x22, bytes([0xC4])), (0x20, b"")]


def _grid(width: int, height: int, dark=lambda x, y: False) -> List[List[bool]]:
    return [[dark(x, y) for x in range(width)] for y in range(height)]


class TestInit:
    """Test the power-on sequence."""

    def test_opcode_order_and_payloads(self, rig: Rig, config: PanelConfig) -> None:
        epd = SSD1680(rig.device, config)

        epd.init()

        assert rig.commands() == INIT_SEQUENCE
        assert epd.state.state == DisplayState.READY

    def test_reset_pulse_precedes_commands(self, rig: Rig, config: PanelConfig) -> None:
        epd = SSD1680(rig.device, config)

        epd.init()

        first_write = next(i for i, e in enumerate(rig.log) if e[0] == "write")
        rst_events = [e for e in rig.log[:first_write] if e[1] == "RST"]
        assert [e[2] for e in rst_events] == [True, False, True]

    def test_waits_for_busy_three_times(self, rig: Rig) -> None:
        calls: List[bool] = []
        epd = SSD1680(rig.device, PanelConfig(on_busy_change=calls.append))

        epd.init()

        assert calls == [True, False] * 3

    def test_same_sequence_for_any_valid_config(self) -> None:
        rig = Rig()
        config = PanelConfig(
            dc_pin="D5", cs_pin="D6", rst_pin="D13", busy_pin="D19",
            spi_frequency=4_000_000, spi_mode=2, reset_hold_time=0.0,
        )

        SSD1680(rig.device, config).init()

        assert rig.commands() == INIT_SEQUENCE

    def test_timeout_aborts_init(self, config: PanelConfig) -> None:
        rig = Rig(busy_forever=True)
        epd = SSD1680(rig.device, config)

        with pytest.raises(BusyTimeoutError, match="reset"):
            epd.init()

        assert rig.opcodes() == []
        assert epd.state.state == DisplayState.AWAITING_BUSY_AFTER_RESET

    def test_init_twice_rejected(self, epd: SSD1680) -> None:
        with pytest.raises(InvalidStateError):
            epd.init()

    def test_size(self, epd: SSD1680) -> None:
        assert epd.size == (122, 250)
        assert epd.BUFFER_SIZE == 16 * 250


class TestClear:
    """Test uniform fills."""

    def test_white_black_white(self, epd: SSD1680, rig: Rig) -> None:
        epd.clear(True)
        epd.clear(False)
        epd.clear(True)

        cmds = rig.commands()
        assert len(cmds) == 9
        for i, fill in enumerate((0xFF, 0x00, 0xFF)):
            ram, *refresh = cmds[i * 3:i * 3 + 3]
            assert ram[0] == CMD.CMD_RAM_BLACK
            assert ram[1] == bytes([fill]) * 4000
            assert refresh == FULL_REFRESH
        assert epd.refresh_count == 3

    def test_ram_write_is_single_bulk_transfer(self, epd: SSD1680, rig: Rig) -> None:
        epd.clear()

        data_writes = [d for kind, d in rig.transfers() if kind == "data" and len(d) > 1]
        assert len(data_writes) == 1
        assert len(data_writes[0]) == 4000

    def test_timeout_during_refresh(self, epd: SSD1680, rig: Rig) -> None:
        rig.busy.forever = True

        with pytest.raises(BusyTimeoutError, match="full refresh"):
            epd.clear()

        assert epd.state.is_ready
        assert epd.refresh_count == 0

    def test_retry_after_timeout_succeeds(self, epd: SSD1680, rig: Rig) -> None:
        rig.busy.forever = True
        with pytest.raises(BusyTimeoutError):
            epd.clear()
        rig.busy.forever = False
        rig.clear_log()

        epd.clear()

        assert rig.opcodes() == [CMD.CMD_RAM_BLACK, CMD.CMD_UPDATE_CTRL2, CMD.CMD_ACTIVATE]
        assert epd.refresh_count == 1

    def test_retry_after_transport_failure_succeeds(self, epd: SSD1680, rig: Rig) -> None:
        rig.spi.fail_after = rig.spi.writes + 1

        with pytest.raises(TransportError):
            epd.clear()

        rig.spi.fail_after = None
        epd.clear(white=False)

        assert epd.state.is_ready
        assert epd.refresh_count == 1


class TestDrawImage:
    """Test full-panel image draws."""

    def test_panel_sized_grid(self, epd: SSD1680, rig: Rig) -> None:
        grid = _grid(122, 250, lambda x, y: x == y)

        epd.draw_image(grid)

        cmds = rig.commands()
        assert cmds[0][0] == CMD.CMD_RAM_BLACK
        assert cmds[1:] == FULL_REFRESH
        assert unpack(cmds[0][1], 122, 250) == grid

    def test_transposed_image_rotated(self, epd: SSD1680, rig: Rig) -> None:
        grid = _grid(250, 122, lambda x, y: x < 10)

        epd.draw_image(grid)

        panel = unpack(rig.commands()[0][1], 122, 250)
        assert panel[249][0] is True
        assert panel[240][121] is True
        assert panel[239][0] is False

    def test_pillow_image(self, epd: SSD1680, rig: Rig) -> None:
        img = Image.new("RGB", (122, 250), "white")
        img.putpixel((5, 7), (0, 0, 0))

        epd.draw_image(img)

        panel = unpack(rig.commands()[0][1], 122, 250)
        assert panel[7][5] is True
        assert sum(row.count(True) for row in panel) == 1

    def test_wrong_size_rejected_without_bus_activity(self, epd: SSD1680, rig: Rig) -> None:
        with pytest.raises(InvalidInputError):
            epd.draw_image(_grid(100, 100))

        assert rig.log == []
        assert epd.state.is_ready

    def test_display_packed_buffer(self, epd: SSD1680, rig: Rig) -> None:
        epd.display(b"\xaa" * 4000)

        assert rig.commands()[0] == (CMD.CMD_RAM_BLACK, b"\xaa" * 4000)

    def test_display_wrong_length(self, epd: SSD1680, rig: Rig) -> None:
        with pytest.raises(InvalidInputError):
            epd.display(b"\x00" * 10)
        assert rig.log == []


class TestPartialDraw:
    """Test windowed updates."""

    def test_window_and_partial_refresh(self, epd: SSD1680, rig: Rig) -> None:
        grid = _grid(16, 10, lambda x, y: True)

        epd.partial_draw_image(grid, 8, 300 - 250)

        cmds = rig.commands()
        assert cmds[0] == (CMD.CMD_RAM_X, bytes([1, 2]))
        assert cmds[1] == (CMD.CMD_RAM_Y, bytes([50, 0, 59, 0]))
        assert cmds[2] == (CMD.CMD_RAM_X_CNT, bytes([1]))
        assert cmds[3] == (CMD.CMD_RAM_Y_CNT, bytes([50, 0]))
        assert cmds[4] == (CMD.CMD_RAM_BLACK, b"\x00" * 20)
        assert cmds[5:] == PARTIAL_REFRESH
        assert epd.partial_count == 1

    def test_unaligned_window_pads_white(self, epd: SSD1680, rig: Rig) -> None:
        epd.partial_draw_image([[True, True]], 7, 0)

        cmds = rig.commands()
        assert cmds[0] == (CMD.CMD_RAM_X, bytes([0, 1]))
        assert cmds[4] == (CMD.CMD_RAM_BLACK, bytes([0xFE, 0x7F]))

    def test_out_of_bounds_rejected_without_bus_activity(self, epd: SSD1680, rig: Rig) -> None:
        with pytest.raises(InvalidInputError):
            epd.partial_draw_image(_grid(10, 10), 120, 0)

        assert rig.log == []

    def test_negative_origin_rejected(self, epd: SSD1680, rig: Rig) -> None:
        with pytest.raises(InvalidInputError):
            epd.partial_draw_image(_grid(4, 4), 0, -1)
        assert rig.log == []

    def test_full_write_after_partial_restores_window(self, epd: SSD1680, rig: Rig) -> None:
        epd.partial_draw_image(_grid(8, 8), 0, 0)
        rig.clear_log()

        epd.clear()
        epd.clear()

        assert rig.opcodes() == [
            CMD.CMD_RAM_X, CMD.CMD_RAM_Y, CMD.CMD_RAM_X_CNT, CMD.CMD_RAM_Y_CNT,
            CMD.CMD_RAM_BLACK, CMD.CMD_UPDATE_CTRL2, CMD.CMD_ACTIVATE,
            CMD.CMD_RAM_BLACK, CMD.CMD_UPDATE_CTRL2, CMD.CMD_ACTIVATE,
        ]
        cmds = rig.commands()
        assert cmds[0] == (CMD.CMD_RAM_X, bytes([0x00, 0x0F]))
        assert cmds[1] == (CMD.CMD_RAM_Y, bytes([0x00, 0x00, 0xF9, 0x00]))
        assert epd.partial_count == 0

    def test_failed_partial_window_restored_on_next_full_write(self, epd: SSD1680, rig: Rig) -> None:
        # Fails on the RAM_Y command byte, after RAM_X was already sent
        rig.spi.fail_after = rig.spi.writes + 3

        with pytest.raises(TransportError):
            epd.partial_draw_image(_grid(8, 8), 16, 16)

        assert epd.state.is_ready
        rig.spi.fail_after = None
        rig.clear_log()

        epd.clear()

        assert rig.opcodes()[:4] == [
            CMD.CMD_RAM_X, CMD.CMD_RAM_Y, CMD.CMD_RAM_X_CNT, CMD.CMD_RAM_Y_CNT,
        ]

    def test_retry_after_partial_timeout_succeeds(self, epd: SSD1680, rig: Rig) -> None:
        rig.busy.forever = True
        with pytest.raises(BusyTimeoutError, match="partial refresh"):
            epd.partial_draw_image(_grid(8, 8), 0, 0)
        rig.busy.forever = False

        epd.partial_draw_image(_grid(8, 8), 0, 0)

        assert epd.partial_count == 1


class TestSleepAndClose:
    """Test power down and resource release."""

    def test_sleep_sends_deep_sleep_without_busy_wait(self, epd: SSD1680, rig: Rig) -> None:
        reads = rig.busy.reads

        epd.sleep()

        assert rig.commands() == [(0x10, b"\x01")]
        assert rig.busy.reads == reads
        assert epd.is_sleeping

    def test_operations_rejected_while_sleeping(self, epd: SSD1680, rig: Rig) -> None:
        epd.sleep()
        rig.clear_log()

        with pytest.raises(InvalidStateError):
            epd.clear()
        with pytest.raises(InvalidStateError):
            epd.sleep()
        assert rig.log == []

    def test_close_sleeps_then_releases(self, epd: SSD1680, rig: Rig) -> None:
        epd.close()

        assert rig.opcodes() == [CMD.CMD_DEEP_SLEEP]
        assert rig.spi.deinit_called
        assert epd.state.is_closed

    def test_close_after_sleep_does_not_sleep_again(self, epd: SSD1680, rig: Rig) -> None:
        epd.sleep()
        rig.clear_log()

        epd.close()

        assert rig.opcodes() == []
        assert rig.spi.deinit_called

    def test_close_after_refresh_timeout_sleeps_and_releases(self, epd: SSD1680, rig: Rig) -> None:
        rig.busy.forever = True
        with pytest.raises(BusyTimeoutError):
            epd.clear()
        rig.clear_log()

        epd.close()

        assert rig.opcodes() == [CMD.CMD_DEEP_SLEEP]
        assert rig.spi.deinit_called
        assert epd.state.is_closed

    def test_close_after_failed_init_still_sleeps(self, config: PanelConfig) -> None:
        rig = Rig(busy_forever=True)
        epd = SSD1680(rig.device, config)
        with pytest.raises(BusyTimeoutError):
            epd.init()
        rig.clear_log()

        epd.close()

        assert rig.commands() == [(CMD.CMD_DEEP_SLEEP, b"\x01")]
        assert rig.spi.deinit_called

    def test_close_releases_bus_when_sleep_fails(self, epd: SSD1680, rig: Rig) -> None:
        rig.spi.fail_after = rig.spi.writes

        with pytest.raises(TransportError):
            epd.close()

        assert rig.spi.deinit_called
        assert epd.state.is_closed

    def test_close_twice_is_noop(self, epd: SSD1680, rig: Rig) -> None:
        epd.close()
        rig.spi.deinit_called = False

        epd.close()

        assert rig.spi.deinit_called is False

    def test_context_manager(self, rig: Rig, config: PanelConfig) -> None:
        with SSD1680(rig.device, config) as epd:
            epd.init()
            epd.clear()

        assert rig.opcodes()[-1] == CMD.CMD_DEEP_SLEEP
        assert rig.spi.deinit_called


class TestOpen:
    """Test construction through open()."""

    def test_open_runs_init(self, rig: Rig, config: PanelConfig) -> None:
        with patch("epd2in13.hardware.spi.SPIDevice.from_board", return_value=rig.device) as fb:
            epd = SSD1680.open(config)

        fb.assert_called_once_with(config)
        assert epd.state.is_ready
        assert rig.commands() == INIT_SEQUENCE

    def test_open_releases_on_init_failure(self, config: PanelConfig) -> None:
        rig = Rig(busy_forever=True)

        with patch("epd2in13.hardware.spi.SPIDevice.from_board", return_value=rig.device):
            with pytest.raises(BusyTimeoutError):
                SSD1680.open(config)

        assert rig.spi.deinit_called
        assert rig.cs.deinit_called

    def test_open_uses_default_config(self, rig: Rig) -> None:
        from_board = Mock(return_value=rig.device)
        with patch("epd2in13.hardware.spi.SPIDevice.from_board", from_board):
            epd = SSD1680.open()

        assert epd.config.dc_pin == "D25"
        assert from_board.call_args[0][0].busy_timeout == 10.0
