"""Data model for CoE object dictionaries and PDO maps."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, NamedTuple, Optional, Tuple


class EntryIndex(NamedTuple):
    """``index:subindex`` address of one CoE dictionary entry."""

    index: int
    subindex: int = 0

    def __str__(self) -> str:
        return f"0x{self.index:04X}:{self.subindex:02X}"


class DataType(IntEnum):
    """CoE basic data type codes (ETG.1000.6, table 64)."""

    BOOL = 0x0001
    I8 = 0x0002
    I16 = 0x0003
    I32 = 0x0004
    U8 = 0x0005
    U16 = 0x0006
    U32 = 0x0007
    F32 = 0x0008
    STRING = 0x0009
    OCTET_STRING = 0x000A
    UNICODE_STRING = 0x000B
    TIME_OF_DAY = 0x000C
    TIME_DIFFERENCE = 0x000D
    DOMAIN = 0x000F
    I24 = 0x0010
    F64 = 0x0011
    I40 = 0x0012
    I48 = 0x0013
    I56 = 0x0014
    I64 = 0x0015
    U24 = 0x0016
    U40 = 0x0018
    U48 = 0x0019
    U56 = 0x001A
    U64 = 0x001B
    BYTE = 0x001E
    WORD = 0x001F
    DWORD = 0x0020
    BIT1 = 0x0030
    BIT2 = 0x0031
    BIT3 = 0x0032
    BIT4 = 0x0033
    BIT5 = 0x0034
    BIT6 = 0x0035
    BIT7 = 0x0036
    BIT8 = 0x0037

    @classmethod
    def from_code(cls, code: int) -> Optional["DataType"]:
        """Return the member for *code*, or ``None`` for unknown codes."""
        try:
            return cls(code)
        except ValueError:
            return None


class Access(Enum):
    UNKNOWN = "unknown"
    READ_ONLY = "ro"
    WRITE_ONLY = "wo"
    READ_WRITE = "rw"

    @classmethod
    def from_flags(cls, read: bool, write: bool) -> "Access":
        if read and write:
            return cls.READ_WRITE
        if read:
            return cls.READ_ONLY
        if write:
            return cls.WRITE_ONLY
        return cls.UNKNOWN


_RD_PREOP = 0x0001
_RD_SAFEOP = 0x0002
_RD_OP = 0x0004
_WR_PREOP = 0x0008
_WR_SAFEOP = 0x0010
_WR_OP = 0x0020
_RXPDO_MAP = 0x0040
_TXPDO_MAP = 0x0080


@dataclass(frozen=True, slots=True)
class EntryAccess:
    """Access rights of an entry in each AL state."""

    pre_op: Access = Access.UNKNOWN
    safe_op: Access = Access.UNKNOWN
    op: Access = Access.UNKNOWN
    rx_mappable: bool = False
    tx_mappable: bool = False

    @classmethod
    def from_bitmap(cls, bits: int) -> "EntryAccess":
        """Decode the ObjAccess word of an SDO info entry description."""
        return cls(
            pre_op=Access.from_flags(bool(bits & _RD_PREOP), bool(bits & _WR_PREOP)),
            safe_op=Access.from_flags(bool(bits & _RD_SAFEOP), bool(bits & _WR_SAFEOP)),
            op=Access.from_flags(bool(bits & _RD_OP), bool(bits & _WR_OP)),
            rx_mappable=bool(bits & _RXPDO_MAP),
            tx_mappable=bool(bits & _TXPDO_MAP),
        )


@dataclass(frozen=True, slots=True)
class EntryInfo:
    """Description of one sub-entry of a dictionary object.

    ``data_type`` is ``None`` when the slave reported a code this library
    does not know.  Such entries, and entries with a bit length of 0, stay
    in the dictionary but cannot be decoded.
    """

    entry: EntryIndex
    data_type: Optional[DataType]
    bit_length: int
    access: EntryAccess = field(default_factory=EntryAccess)
    name: str = ""
    data_type_code: int = 0

    @property
    def decodable(self) -> bool:
        return self.data_type is not None and self.bit_length > 0


@dataclass(frozen=True, slots=True)
class ObjectInfo:
    """One top-level object of a slave's dictionary with its sub-entries.

    ``entries`` has ``max_subindex + 1`` slots; slot 0 is the
    "number of entries" field.
    """

    position: int
    index: int
    object_code: int
    max_subindex: int
    name: str
    entries: Tuple[EntryInfo, ...] = ()

    def entry(self, subindex: int) -> Optional[EntryInfo]:
        if 0 <= subindex < len(self.entries):
            return self.entries[subindex]
        return None


class SyncManagerType(IntEnum):
    """Sync manager communication type (object 0x1C00)."""

    UNUSED = 0
    MAILBOX_WRITE = 1
    MAILBOX_READ = 2
    OUTPUTS = 3
    INPUTS = 4


@dataclass(frozen=True, slots=True)
class PdoEntryInfo:
    """Placement of one mapped entry inside a slave's process image."""

    position: int
    entry: EntryIndex
    bit_length: int
    byte_offset: int
    bit_offset: int
    data_type: Optional[DataType]
    sm_type: SyncManagerType
    name: str = ""

    @property
    def byte_count(self) -> int:
        return (self.bit_length + 7) // 8

    @property
    def is_padding(self) -> bool:
        return self.entry.index == 0


@dataclass(frozen=True, slots=True)
class PdoInfo:
    position: int
    index: int
    sm: int
    name: str
    entries: Tuple[PdoEntryInfo, ...] = ()

    @property
    def entry_count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True, slots=True)
class PdoAssignment:
    """PDOs assigned to one process-data sync manager."""

    sm: int
    sm_type: SyncManagerType
    pdos: Tuple[PdoInfo, ...] = ()

    def entries(self):
        for pdo in self.pdos:
            yield from pdo.entries


@dataclass(frozen=True, slots=True)
class Value:
    """A decoded CoE value tagged with the data type it came from."""

    data_type: DataType
    value: Any

    def __str__(self) -> str:
        return f"{self.data_type.name}({self.value!r})"


class AlState(IntEnum):
    """EtherCAT Application Layer states."""

    NONE = 0x00
    INIT = 0x01
    PRE_OP = 0x02
    BOOT = 0x03
    SAFE_OP = 0x04
    OP = 0x08
