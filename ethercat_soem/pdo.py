"""
EtherCAT SOEM — PDO assignment
================================

Resolves how a slave's process image is laid out by reading the sync
manager communication types (0x1C00), the PDO assignment objects
(0x1C10 + SM) and the PDO mapping entries over SDO, and cross-referencing
the object dictionary for data types and names.

Also writes SyncManager PDO assignments from a JSON file before the
process image is mapped.
"""

import json
import logging
import struct
from pathlib import Path

from .exceptions import ConfigurationError, SdoWriteError, UnexpectedDataTypeError
from .types import (
    DataType,
    EntryIndex,
    PdoAssignment,
    PdoEntryInfo,
    PdoInfo,
    SyncManagerType,
)


logger = logging.getLogger(__name__)

DEFAULT_RX_PDO = [0x1600]
DEFAULT_TX_PDO = [0x1A00]

SDO_IDX_SM_COMM_TYPE = 0x1C00
SDO_IDX_PDO_ASSIGN = 0x1C10

MAX_SM_COUNT = 8

DEFAULT_SDO_TIMEOUT = 3.0


# ----------------------------------------------------------------------
# Resolution
# ----------------------------------------------------------------------

def _read_uint(engine, slave, index, subindex, fmt, timeout):
    size = struct.calcsize(fmt)
    raw = engine.sdo_read(slave, index, subindex, False, size, timeout)
    if len(raw) < size:
        raise UnexpectedDataTypeError(
            slave, EntryIndex(index, subindex),
            f"expected {size} byte(s), got {len(raw)}"
        )
    return struct.unpack(fmt, bytes(raw[:size]))[0]


def unpack_mapping_entry(value):
    """Split a 32-bit PDO mapping entry into (index, subindex, bit_length).

    Layout: bits 31..16 = object index, bits 15..8 = subindex,
    bits 7..0 = bit length.
    """
    return (value >> 16) & 0xFFFF, (value >> 8) & 0xFF, value & 0xFF


def sm_comm_type(engine, slave, subindex, timeout=DEFAULT_SDO_TIMEOUT):
    """Read one 0x1C00 sub-entry (SM count at sub 0, SM types above)."""
    return _read_uint(engine, slave, SDO_IDX_SM_COMM_TYPE, subindex, "<B", timeout)


def _sm_type(slave, sm, code):
    try:
        return SyncManagerType(code)
    except ValueError:
        logger.warning(f"Slave {slave}: SM {sm} reports unknown type {code}")
        return SyncManagerType.UNUSED


class _Cursor:
    """Running bit offset and positions of one direction."""

    def __init__(self):
        self.bits = 0


def _read_pdo_assign(engine, dictionary, slave, sm, sm_type, cursor, positions, timeout):
    """Read the PDOs assigned to sync manager *sm*."""
    idx = SDO_IDX_PDO_ASSIGN + sm
    pdo_count = _read_uint(engine, slave, idx, 0, "<B", timeout)
    logger.debug(f"Slave {slave}: 0x{idx:04X} has {pdo_count} assigned PDO(s)")

    pdos = []
    for pdo_sub in range(1, pdo_count + 1):
        pdo_index = _read_uint(engine, slave, idx, pdo_sub, "<H", timeout)
        entry_count = _read_uint(engine, slave, pdo_index, 0, "<B", timeout)
        logger.debug(
            f"Slave {slave}: 0x{idx:04X}:{pdo_sub:02X} -> PDO 0x{pdo_index:04X} "
            f"with {entry_count} entries"
        )

        entries = []
        for entry_sub in range(1, entry_count + 1):
            raw = _read_uint(engine, slave, pdo_index, entry_sub, "<I", timeout)
            obj_index, obj_sub, bit_length = unpack_mapping_entry(raw)
            target = EntryIndex(obj_index, obj_sub)

            info = dictionary.find_entry(slave, target) if dictionary else None
            if info is None:
                if obj_index:
                    logger.warning(
                        f"Slave {slave}: could not find SDO {target} entry description"
                    )
                data_type, name = None, ""
            else:
                if info.bit_length != bit_length:
                    logger.warning(
                        f"Slave {slave}: {target} is mapped with {bit_length} bits, "
                        f"dictionary says {info.bit_length}"
                    )
                data_type, name = info.data_type, info.name

            byte_offset, bit_offset = divmod(cursor.bits, 8)
            if bit_offset and data_type not in (None, DataType.BOOL):
                logger.warning(
                    f"Slave {slave}: {target} ({data_type.name}) starts at "
                    f"bit {bit_offset} of byte {byte_offset}"
                )
            entries.append(PdoEntryInfo(
                position=positions["entry"],
                entry=target,
                bit_length=bit_length,
                byte_offset=byte_offset,
                bit_offset=bit_offset,
                data_type=data_type,
                sm_type=sm_type,
                name=name,
            ))
            positions["entry"] += 1
            cursor.bits += bit_length

        if not entries:
            continue

        obj = dictionary.find_object(slave, pdo_index) if dictionary else None
        if obj is None:
            logger.warning(f"Slave {slave}: could not find SDO 0x{pdo_index:04X} name")
        pdos.append(PdoInfo(
            position=positions["pdo"],
            index=pdo_index,
            sm=sm,
            name=obj.name if obj else "",
            entries=tuple(entries),
        ))
        positions["pdo"] += 1
    return tuple(pdos)


def resolve(engine, dictionary, slave, timeout=DEFAULT_SDO_TIMEOUT):
    """Build the PDO assignment of *slave*.

    Outputs sync managers come first, then inputs, each by ascending SM
    index; this is the order the process image is laid out in.  Bit
    offsets accumulate per direction across all PDOs of the slave.

    Args:
        engine: Engine adapter providing ``sdo_read``.
        dictionary: :class:`~ethercat_soem.od.ObjectDictionary` used to
            look up data types and names.
        slave: Zero-based slave position.
        timeout: Timeout per SDO read in seconds.

    Returns:
        tuple[PdoAssignment, ...]

    Raises:
        SdoReadError: Any mailbox read failed.
        UnexpectedDataTypeError: A protocol object returned a short payload.
    """
    obj_count = sm_comm_type(engine, slave, 0, timeout)
    if obj_count <= 2:
        logger.warning(f"Slave {slave}: found less than two sync manager types")
        return ()

    sm_count = obj_count - 1
    if sm_count > MAX_SM_COUNT:
        logger.warning(
            f"Slave {slave}: {sm_count} sync managers reported, "
            f"limited to {MAX_SM_COUNT}"
        )
        sm_count = MAX_SM_COUNT

    sm_types = []
    for sm in range(2, sm_count + 1):
        sm_type = _sm_type(slave, sm, sm_comm_type(engine, slave, sm + 1, timeout))
        if sm == 2 and sm_type == SyncManagerType.MAILBOX_READ:
            logger.warning(
                f"Slave {slave}: SM2 has type {int(sm_type)} (mailbox), "
                f"this is a bug in the slave"
            )
            continue
        sm_types.append((sm, sm_type))

    cursors = {
        SyncManagerType.OUTPUTS: _Cursor(),
        SyncManagerType.INPUTS: _Cursor(),
    }
    positions = {"pdo": 0, "entry": 0}
    assignments = []
    for direction in (SyncManagerType.OUTPUTS, SyncManagerType.INPUTS):
        for sm, sm_type in sorted(sm_types):
            if sm_type != direction:
                continue
            logger.debug(f"Slave {slave}: SM {sm} ({sm_type.name}): read the assigned PDOs")
            pdos = _read_pdo_assign(
                engine, dictionary, slave, sm, sm_type,
                cursors[direction], positions, timeout,
            )
            assignments.append(PdoAssignment(sm=sm, sm_type=sm_type, pdos=pdos))
    return tuple(assignments)


def pdo_bit_sizes(assignments):
    """Return (output_bits, input_bits) covered by *assignments*."""
    sizes = {SyncManagerType.OUTPUTS: 0, SyncManagerType.INPUTS: 0}
    for assignment in assignments:
        for entry in assignment.entries():
            sizes[assignment.sm_type] += entry.bit_length
    return sizes[SyncManagerType.OUTPUTS], sizes[SyncManagerType.INPUTS]


# ----------------------------------------------------------------------
# Assignment configuration
# ----------------------------------------------------------------------

def load_pdo_config(path):
    """Load PDO assignment configuration from a JSON file.

    File format::

        {
          "default": {
            "rx_pdo": ["0x1600", "0x1605"],
            "tx_pdo": ["0x1A00", "0x1A05"]
          },
          "slaves": {
            "0": {
              "rx_pdo": ["0x1600", "0x1605"],
              "tx_pdo": ["0x1A00", "0x1A05"]
            }
          }
        }

    Hex strings (``"0x1600"``) and plain integers (``5632``) are both
    accepted for PDO indices.

    Returns:
        dict: Parsed config with integer PDO values, keyed by slave
        position and ``"default"``.

    Raises:
        ConfigurationError: The file cannot be read or parsed.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Could not load PDO config {path}: {exc}") from exc

    def _parse_list(lst):
        return [int(v, 16) if isinstance(v, str) and v.lower().startswith("0x") else int(v)
                for v in lst]

    config = {}
    if "default" in raw:
        d = raw["default"]
        config["default"] = {
            "rx_pdo": _parse_list(d.get("rx_pdo", [])),
            "tx_pdo": _parse_list(d.get("tx_pdo", [])),
        }
    for key, val in raw.get("slaves", {}).items():
        config[int(key)] = {
            "rx_pdo": _parse_list(val.get("rx_pdo", [])),
            "tx_pdo": _parse_list(val.get("tx_pdo", [])),
        }
    return config


def get_slave_pdo(pdo_config, slave, default_rx=None, default_tx=None):
    """Look up (rx_pdo, tx_pdo) lists for a slave position.

    Falls back to the ``"default"`` key, then to the provided defaults
    (or ``DEFAULT_RX_PDO`` / ``DEFAULT_TX_PDO``).
    """
    if pdo_config:
        entry = pdo_config.get(slave, pdo_config.get("default"))
        if entry:
            return entry["rx_pdo"], entry["tx_pdo"]
    return list(default_rx or DEFAULT_RX_PDO), list(default_tx or DEFAULT_TX_PDO)


def configure_pdo_mapping(engine, slave, rx_pdo=None, tx_pdo=None,
                          timeout=DEFAULT_SDO_TIMEOUT):
    """Write the SM2 (0x1C12, RxPDO) and SM3 (0x1C13, TxPDO) assignments.

    The slave must be in PRE-OP.  The count is cleared first, the PDO
    indices written, then the count set.

    Raises:
        ConfigurationError: Any SDO write failed.
    """
    if rx_pdo is None:
        rx_pdo = DEFAULT_RX_PDO
    if tx_pdo is None:
        tx_pdo = DEFAULT_TX_PDO

    def _sdo_write(index, subindex, data, label):
        try:
            engine.sdo_write(slave, index, subindex, False, data, timeout)
        except SdoWriteError as exc:
            raise ConfigurationError(f"{exc} ({label})") from exc

    for sm_index, pdos, label in ((0x1C12, rx_pdo, "RxPDO"), (0x1C13, tx_pdo, "TxPDO")):
        _sdo_write(sm_index, 0x00, struct.pack("<B", 0), f"clear {label} count")
        for i, pdo in enumerate(pdos, start=1):
            _sdo_write(sm_index, i, struct.pack("<H", pdo), f"{label}[{i}]=0x{pdo:04X}")
        _sdo_write(sm_index, 0x00, struct.pack("<B", len(pdos)),
                   f"set {label} count={len(pdos)}")

    logger.debug(
        f"Slave {slave}: assigned RxPDO={[f'0x{p:04X}' for p in rx_pdo]} "
        f"TxPDO={[f'0x{p:04X}' for p in tx_pdo]}"
    )
