"""Shared fixtures: fake SPI bus, fake pins and a fake clock."""

from typing import Any, List, Optional, Tuple

import pytest

from epd2in13.config import PanelConfig
from epd2in13.drivers.ssd1680 import SSD1680
from epd2in13.hardware import spi as spi_module
from epd2in13.hardware.spi import SPIDevice


class FakeClock:
    """Stands in for the ``time`` module inside ``epd2in13.hardware.spi``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakePin:
    """Digital pin recording every level written to a shared event log."""

    def __init__(self, name: str, log: List[Tuple], value: bool = True) -> None:
        self.name = name
        self.log = log
        self._value = value
        self.direction = None
        self.deinit_called = False
        self.fail_set = False

    @property
    def value(self) -> bool:
        return self._value

    @value.setter
    def value(self, level: bool) -> None:
        if self.fail_set:
            raise OSError(f"{self.name} write failed")
        self._value = level
        self.log.append(("pin", self.name, bool(level)))

    def deinit(self) -> None:
        self.deinit_called = True


class FakeBusyPin(FakePin):
    """BUSY input: reports busy for ``busy_reads`` reads, then idle."""

    def __init__(self, log: List[Tuple], busy_reads: int = 0, forever: bool = False) -> None:
        super().__init__("BUSY", log, value=False)
        self.busy_reads = busy_reads
        self.forever = forever
        self.reads = 0

    @property
    def value(self) -> bool:
        self.reads += 1
        if self.forever:
            return True
        if self.busy_reads > 0:
            self.busy_reads -= 1
            return True
        return False

    @value.setter
    def value(self, level: bool) -> None:
        raise AssertionError("BUSY is an input")


class FakeSPI:
    """SPI bus recording writes into the shared event log."""

    def __init__(self, log: List[Tuple], fail_after: Optional[int] = None) -> None:
        self.log = log
        self.locked = False
        self.writes = 0
        self.fail_after = fail_after
        self.deinit_called = False
        self.configured: dict = {}

    def try_lock(self) -> bool:
        if self.locked:
            return False
        self.locked = True
        return True

    def unlock(self) -> None:
        self.locked = False

    def configure(self, **kwargs: Any) -> None:
        self.configured = kwargs

    def write(self, data: Any) -> None:
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise OSError("SPI write failed")
        self.writes += 1
        self.log.append(("write", bytes(data)))

    def deinit(self) -> None:
        self.deinit_called = True


class Rig:
    """Fake hardware bundle plus helpers to decode the recorded traffic."""

    def __init__(self, busy_reads: int = 0, busy_forever: bool = False) -> None:
        self.log: List[Tuple] = []
        self.spi = FakeSPI(self.log)
        self.cs = FakePin("CS", self.log)
        self.dc = FakePin("DC", self.log)
        self.rst = FakePin("RST", self.log)
        self.busy = FakeBusyPin(self.log, busy_reads=busy_reads, forever=busy_forever)
        self.device = SPIDevice(self.spi, self.cs, self.dc, self.rst, self.busy)

    def transfers(self) -> List[Tuple[str, bytes]]:
        """Every SPI write tagged 'cmd' or 'data' from the DC level at the time."""
        dc = True
        out = []
        for event in self.log:
            if event[0] == "pin" and event[1] == "DC":
                dc = event[2]
            elif event[0] == "write":
                out.append(("data" if dc else "cmd", event[1]))
        return out

    def commands(self) -> List[Tuple[int, bytes]]:
        """Decode traffic into (opcode, payload) pairs."""
        out: List[Tuple[int, bytes]] = []
        for kind, data in self.transfers():
            if kind == "cmd":
                out.append((data[0], b""))
            else:
                opcode, payload = out[-1]
                out[-1] = (opcode, payload + data)
        return out

    def opcodes(self) -> List[int]:
        return [op for op, _ in self.commands()]

    def clear_log(self) -> None:
        del self.log[:]


@pytest.fixture(autouse=True)
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Replace real sleeping and timing in the SPI layer."""
    fake = FakeClock()
    monkeypatch.setattr(spi_module, "time", fake)
    return fake


@pytest.fixture
def rig() -> Rig:
    return Rig()


@pytest.fixture
def config() -> PanelConfig:
    return PanelConfig(busy_timeout=1.0, busy_poll_interval=0.01)


@pytest.fixture
def epd(rig: Rig, config: PanelConfig) -> SSD1680:
    """Initialized driver on fake hardware with the init traffic cleared."""
    driver = SSD1680(rig.device, config)
    driver.init()
    rig.clear_log()
    return driver
