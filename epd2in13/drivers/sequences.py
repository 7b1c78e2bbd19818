"""
SSD1680 Update Sequences & Configuration Constants
===================================================
Register values sent with the commands in ``commands.py``.

The Display Update Control 2 value (0x22) selects which steps the
controller runs on Master Activation (0x20):
  - Clock enable/disable
  - Analog power enable/disable
  - Temperature sensor reading
  - LUT loading (Mode 1 full waveform or Mode 2 partial waveform)
  - Display driving
  - Power-down sequence
"""

# =============================================================================
# Update Sequences (Register 0x22 values)
# =============================================================================

SEQ_FULL = 0xF7               # Clk -> Analog -> Temp -> Mode1 -> Power Off
                              # Slow, clears ghosting

SEQ_PARTIAL = 0xC4            # Clk -> Analog -> Display (Mode 2 waveform)
                              # Fast, ghosting builds up over repeated use


# =============================================================================
# Deep Sleep (Register 0x10 value)
# =============================================================================

SLEEP_MODE_1 = 0x01           # RAM retained, wake needs HW reset


# =============================================================================
# Data Entry Mode (Register 0x11)
# =============================================================================

DATA_ENTRY_INC = 0x03         # X+, Y+ with X incrementing first


# =============================================================================
# Border Waveform (Register 0x3C)
# =============================================================================

BORDER_FULL = 0x05            # GS Transition - follows LUT waveform


# =============================================================================
# Display Update Control 1 (Register 0x21)
# =============================================================================

UPDATE_CTRL1_NORMAL = (0x00, 0x80)   # Normal RAM, source S8-S167


# =============================================================================
# Bit Layout
# =============================================================================

WHITE_BYTE = 0xFF             # BW RAM bit 1 = white
BLACK_BYTE = 0x00             # BW RAM bit 0 = black
