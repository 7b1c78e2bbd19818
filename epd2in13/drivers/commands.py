"""
SSD1680 Command Constants
=========================
Opcodes used by the 2.13" panel driver and the payload size each one takes.

Reference: SSD1680 Datasheet Section 7 (Command Table)
"""

# =============================================================================
# Panel Configuration
# =============================================================================

CMD_DRIVER_OUTPUT = 0x01      # Driver Output Control - gate count (height - 1)
CMD_DATA_ENTRY = 0x11         # Data Entry Mode - X/Y increment direction
CMD_SW_RESET = 0x12           # Software Reset - resets all registers to POR

# =============================================================================
# Power Control
# =============================================================================

CMD_DEEP_SLEEP = 0x10         # Deep Sleep Mode - 0x01=retain RAM

# =============================================================================
# Display Update Sequence
# =============================================================================

CMD_ACTIVATE = 0x20           # Master Activation - triggers update sequence
CMD_UPDATE_CTRL1 = 0x21       # Display Update Control 1 - RAM options
CMD_UPDATE_CTRL2 = 0x22       # Display Update Control 2 - sequence select

# =============================================================================
# RAM Access
# =============================================================================

CMD_RAM_BLACK = 0x24          # Write to BW RAM (1=white, 0=black)

# =============================================================================
# Border Control
# =============================================================================

CMD_BORDER = 0x3C             # Border Waveform Control

# =============================================================================
# RAM Address Configuration
# =============================================================================

CMD_RAM_X = 0x44              # Set RAM X Address Start/End (in bytes)
CMD_RAM_Y = 0x45              # Set RAM Y Address Start/End (16-bit rows)
CMD_RAM_X_CNT = 0x4E          # Set RAM X Address Counter
CMD_RAM_Y_CNT = 0x4F          # Set RAM Y Address Counter

# =============================================================================
# Payload Shapes
# =============================================================================

BULK = -1                     # Variable-length payload

PAYLOAD_SIZES = {
    CMD_DRIVER_OUTPUT: 3,
    CMD_DEEP_SLEEP: 1,
    CMD_DATA_ENTRY: 1,
    CMD_SW_RESET: 0,
    CMD_ACTIVATE: 0,
    CMD_UPDATE_CTRL1: 2,
    CMD_UPDATE_CTRL2: 1,
    CMD_RAM_BLACK: BULK,
    CMD_BORDER: 1,
    CMD_RAM_X: 2,
    CMD_RAM_Y: 4,
    CMD_RAM_X_CNT: 1,
    CMD_RAM_Y_CNT: 2,
}

NAMES = {
    CMD_DRIVER_OUTPUT: "DRIVER_OUTPUT",
    CMD_DEEP_SLEEP: "DEEP_SLEEP",
    CMD_DATA_ENTRY: "DATA_ENTRY",
    CMD_SW_RESET: "SW_RESET",
    CMD_ACTIVATE: "ACTIVATE",
    CMD_UPDATE_CTRL1: "UPDATE_CTRL1",
    CMD_UPDATE_CTRL2: "UPDATE_CTRL2",
    CMD_RAM_BLACK: "RAM_BLACK",
    CMD_BORDER: "BORDER",
    CMD_RAM_X: "RAM_X",
    CMD_RAM_Y: "RAM_Y",
    CMD_RAM_X_CNT: "RAM_X_CNT",
    CMD_RAM_Y_CNT: "RAM_Y_CNT",
}

if set(NAMES) != set(PAYLOAD_SIZES):
    raise ImportError("command table out of sync: NAMES vs PAYLOAD_SIZES")


def name(opcode: int) -> str:
    """Human-readable opcode name for logs and errors."""
    return NAMES.get(opcode, f"0x{opcode:02X}")


def check_payload(opcode: int, length: int) -> None:
    """
    Verify a payload length against the command table.

    Raises:
        ValueError: Unknown opcode or wrong payload length
    """
    try:
        expected = PAYLOAD_SIZES[opcode]
    except KeyError:
        raise ValueError(f"unknown opcode 0x{opcode:02X}") from None
    if expected == BULK:
        if length == 0:
            raise ValueError(f"{name(opcode)} requires a payload")
        return
    if length != expected:
        raise ValueError(
            f"{name(opcode)} takes {expected} data bytes, got {length}"
        )
