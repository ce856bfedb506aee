"""
EtherCAT SOEM — AL state and AL status codes
"""

from enum import IntEnum

from .types import AlState


STATE_ERROR = 0x10

_STATE_NAMES = {
    AlState.NONE: "NONE",
    AlState.INIT: "INIT",
    AlState.PRE_OP: "PRE-OP",
    AlState.BOOT: "BOOT",
    AlState.SAFE_OP: "SAFE-OP",
    AlState.OP: "OP",
}


def state_name(state_code):
    """Human-readable EtherCAT state from a raw state code."""
    base = state_code & ~STATE_ERROR
    name = _STATE_NAMES.get(base, f"0x{state_code:02X}")
    if state_code & STATE_ERROR:
        name += "+ERR"
    return name


class AlStatus(IntEnum):
    """AL status code reported by a slave in register 0x0134."""

    NO_ERROR = 0x0000
    UNSPECIFIED_ERROR = 0x0001
    NO_MEMORY = 0x0002
    INVALID_REQUESTED_STATE_CHANGE = 0x0011
    UNKNOWN_REQUESTED_STATE = 0x0012
    BOOTSTRAP_NOT_SUPPORTED = 0x0013
    NO_VALID_FIRMWARE = 0x0014
    INVALID_MAILBOX_CONFIG_BOOT = 0x0015
    INVALID_MAILBOX_CONFIG_PREOP = 0x0016
    INVALID_SYNC_MANAGER_CONFIG = 0x0017
    NO_VALID_INPUTS = 0x0018
    NO_VALID_OUTPUTS = 0x0019
    SYNCHRONIZATION_ERROR = 0x001A
    SYNC_MANAGER_WATCHDOG = 0x001B
    INVALID_SYNC_MANAGER_TYPES = 0x001C
    INVALID_OUTPUT_CONFIG = 0x001D
    INVALID_INPUT_CONFIG = 0x001E
    INVALID_WATCHDOG_CONFIG = 0x001F
    SLAVE_NEEDS_COLD_START = 0x0020
    SLAVE_NEEDS_INIT = 0x0021
    SLAVE_NEEDS_PREOP = 0x0022
    SLAVE_NEEDS_SAFEOP = 0x0023
    INVALID_INPUT_MAPPING = 0x0024
    INVALID_OUTPUT_MAPPING = 0x0025
    INCONSISTENT_SETTINGS = 0x0026
    FREERUN_NOT_SUPPORTED = 0x0027
    SYNCMODE_NOT_SUPPORTED = 0x0028
    FREERUN_NEEDS_3BUFFER_MODE = 0x0029
    BACKGROUND_WATCHDOG = 0x002A
    NO_VALID_INPUTS_AND_OUTPUTS = 0x002B
    FATAL_SYNC_ERROR = 0x002C
    NO_SYNC_ERROR = 0x002D
    INVALID_INPUT_FMMU_CONFIG = 0x002E
    INVALID_DC_SYNC_CONFIG = 0x0030
    INVALID_DC_LATCH_CONFIG = 0x0031
    PLL_ERROR = 0x0032
    DC_SYNC_IO_ERROR = 0x0033
    DC_SYNC_TIMEOUT = 0x0034
    DC_INVALID_SYNC_CYCLE_TIME = 0x0035
    DC_SYNC0_CYCLE_TIME = 0x0036
    DC_SYNC1_CYCLE_TIME = 0x0037
    MBX_AOE = 0x0041
    MBX_EOE = 0x0042
    MBX_COE = 0x0043
    MBX_FOE = 0x0044
    MBX_SOE = 0x0045
    MBX_VOE = 0x004F
    EEPROM_NO_ACCESS = 0x0050
    EEPROM_ERROR = 0x0051
    SLAVE_RESTARTED_LOCALLY = 0x0060
    DEVICE_ID_VALUE_UPDATED = 0x0061
    APPLICATION_CONTROLLER_AVAILABLE = 0x00F0
    UNKNOWN = 0xFFFF

    @classmethod
    def from_code(cls, code):
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


_AL_STATUS_TEXT = {
    AlStatus.NO_ERROR: "No error",
    AlStatus.UNSPECIFIED_ERROR: "Unspecified error",
    AlStatus.NO_MEMORY: "No memory",
    AlStatus.INVALID_REQUESTED_STATE_CHANGE: "Invalid requested state change",
    AlStatus.UNKNOWN_REQUESTED_STATE: "Unknown requested state",
    AlStatus.BOOTSTRAP_NOT_SUPPORTED: "Bootstrap not supported",
    AlStatus.NO_VALID_FIRMWARE: "No valid firmware",
    AlStatus.INVALID_MAILBOX_CONFIG_BOOT: "Invalid mailbox configuration (BOOT)",
    AlStatus.INVALID_MAILBOX_CONFIG_PREOP: "Invalid mailbox configuration (PREOP)",
    AlStatus.INVALID_SYNC_MANAGER_CONFIG: "Invalid sync manager configuration",
    AlStatus.NO_VALID_INPUTS: "No valid inputs available",
    AlStatus.NO_VALID_OUTPUTS: "No valid outputs",
    AlStatus.SYNCHRONIZATION_ERROR: "Synchronization error",
    AlStatus.SYNC_MANAGER_WATCHDOG: "Sync manager watchdog",
    AlStatus.INVALID_SYNC_MANAGER_TYPES: "Invalid sync manager types",
    AlStatus.INVALID_OUTPUT_CONFIG: "Invalid output configuration",
    AlStatus.INVALID_INPUT_CONFIG: "Invalid input configuration",
    AlStatus.INVALID_WATCHDOG_CONFIG: "Invalid watchdog configuration",
    AlStatus.SLAVE_NEEDS_COLD_START: "Slave needs cold start",
    AlStatus.SLAVE_NEEDS_INIT: "Slave needs INIT",
    AlStatus.SLAVE_NEEDS_PREOP: "Slave needs PREOP",
    AlStatus.SLAVE_NEEDS_SAFEOP: "Slave needs SAFEOP",
    AlStatus.INVALID_INPUT_MAPPING: "Invalid input mapping",
    AlStatus.INVALID_OUTPUT_MAPPING: "Invalid output mapping",
    AlStatus.INCONSISTENT_SETTINGS: "Inconsistent settings",
    AlStatus.FREERUN_NOT_SUPPORTED: "FreeRun not supported",
    AlStatus.SYNCMODE_NOT_SUPPORTED: "SyncMode not supported",
    AlStatus.FREERUN_NEEDS_3BUFFER_MODE: "FreeRun needs 3-buffer mode",
    AlStatus.BACKGROUND_WATCHDOG: "Background watchdog",
    AlStatus.NO_VALID_INPUTS_AND_OUTPUTS: "No valid inputs and outputs",
    AlStatus.FATAL_SYNC_ERROR: "Fatal sync error",
    AlStatus.NO_SYNC_ERROR: "No sync error",
    AlStatus.INVALID_INPUT_FMMU_CONFIG: "Invalid input FMMU configuration",
    AlStatus.INVALID_DC_SYNC_CONFIG: "Invalid DC sync configuration",
    AlStatus.INVALID_DC_LATCH_CONFIG: "Invalid DC latch configuration",
    AlStatus.PLL_ERROR: "PLL error",
    AlStatus.DC_SYNC_IO_ERROR: "DC sync I/O error",
    AlStatus.DC_SYNC_TIMEOUT: "DC sync timeout",
    AlStatus.DC_INVALID_SYNC_CYCLE_TIME: "DC invalid sync cycle time",
    AlStatus.DC_SYNC0_CYCLE_TIME: "DC sync0 cycle time",
    AlStatus.DC_SYNC1_CYCLE_TIME: "DC sync1 cycle time",
    AlStatus.MBX_AOE: "MBX_AOE",
    AlStatus.MBX_EOE: "MBX_EOE",
    AlStatus.MBX_COE: "MBX_COE",
    AlStatus.MBX_FOE: "MBX_FOE",
    AlStatus.MBX_SOE: "MBX_SOE",
    AlStatus.MBX_VOE: "MBX_VOE",
    AlStatus.EEPROM_NO_ACCESS: "EEPROM no access",
    AlStatus.EEPROM_ERROR: "EEPROM error",
    AlStatus.SLAVE_RESTARTED_LOCALLY: "Slave restarted locally",
    AlStatus.DEVICE_ID_VALUE_UPDATED: "Device identification value updated",
    AlStatus.APPLICATION_CONTROLLER_AVAILABLE: "Application controller available",
}


def al_status_text(code):
    """Description of an AL status code, ``"Unknown"`` if not listed."""
    return _AL_STATUS_TEXT.get(AlStatus.from_code(code), "Unknown")
