"""
EtherCAT SOEM — Custom exceptions
"""


def _fmt_entry(entry):
    return f"0x{entry[0]:04X}:{entry[1]:02X}"


class EtherCATError(Exception):
    """Base exception for all EtherCAT master errors."""
    pass


class ConnectionError(EtherCATError):
    """Raised when the EtherCAT connection cannot be established."""
    pass


class CommunicationError(EtherCATError):
    """Raised when EtherCAT communication fails or times out."""
    pass


class ConfigurationError(EtherCATError):
    """Raised when PDO mapping or slave configuration fails."""
    pass


# ----------------------------------------------------------------------
# Mailbox / discovery
# ----------------------------------------------------------------------

class SdoReadError(CommunicationError):
    """An SDO upload failed or timed out."""

    def __init__(self, slave, entry, reason=""):
        self.slave = slave
        self.entry = entry
        msg = f"Could not read {_fmt_entry(entry)} of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class SdoWriteError(CommunicationError):
    """An SDO download failed or timed out."""

    def __init__(self, slave, entry, reason=""):
        self.slave = slave
        self.entry = entry
        msg = f"Could not write {_fmt_entry(entry)} of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class OdListError(CommunicationError):
    """The object description list of a slave could not be read."""

    def __init__(self, slave, reason=""):
        self.slave = slave
        msg = f"Could not read OD list of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class OdDescriptionError(CommunicationError):
    """Reading one object description failed.

    ``completed`` holds the objects read before the failing position.
    """

    def __init__(self, slave, position, completed=(), reason=""):
        self.slave = slave
        self.position = position
        self.completed = tuple(completed)
        msg = f"Could not read OD description #{position} of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class OeListError(CommunicationError):
    """Reading the entry list of one object failed.

    ``completed`` holds the objects read before the failing position.
    """

    def __init__(self, slave, position, completed=(), reason=""):
        self.slave = slave
        self.position = position
        self.completed = tuple(completed)
        msg = f"Could not read OE list #{position} of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class UnexpectedDataTypeError(CommunicationError):
    """A protocol SDO returned a payload that does not fit its CoE type."""

    def __init__(self, slave, entry, reason=""):
        self.slave = slave
        self.entry = entry
        msg = f"Unexpected data at {_fmt_entry(entry)} of slave {slave}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ----------------------------------------------------------------------
# Codec
# ----------------------------------------------------------------------

class CodecError(EtherCATError):
    """Base class for value encode/decode failures."""
    pass


class UnsupportedDataTypeError(CodecError):
    """The CoE data type has no decoder."""

    def __init__(self, data_type, reason=""):
        self.data_type = data_type
        name = getattr(data_type, "name", data_type)
        msg = f"Unsupported data type {name}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class UnsupportedValueError(CodecError):
    """The value cannot be serialised for its data type."""

    def __init__(self, value, reason=""):
        self.value = value
        msg = f"Unsupported value {value!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class EmptyBufferError(CodecError):
    """A decode was attempted on an empty buffer."""

    def __init__(self):
        super().__init__("Cannot decode a value from an empty buffer")


class BufferTooSmallError(CodecError):
    """The buffer holds fewer bytes than the entry needs."""

    def __init__(self, expected, actual):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Buffer too small: expected {expected} byte(s), got {actual}"
        )


# ----------------------------------------------------------------------
# Mapping / lookup
# ----------------------------------------------------------------------

class SlaveNotFoundError(EtherCATError):
    """No discovery data exists for the slave position."""

    def __init__(self, slave):
        self.slave = slave
        super().__init__(f"No discovery data for slave {slave}")


class IndexNotFoundError(EtherCATError):
    """The object index is not part of the slave's dictionary."""

    def __init__(self, slave, index):
        self.slave = slave
        self.index = index
        super().__init__(f"Index 0x{index:04X} not found at slave {slave}")


class EntryNotFoundError(EtherCATError):
    """The entry is neither in the dictionary nor in the PDO map."""

    def __init__(self, slave, entry):
        self.slave = slave
        self.entry = entry
        super().__init__(f"Entry {_fmt_entry(entry)} not found at slave {slave}")


class WrongDirectionError(EtherCATError):
    """A process-data write targeted an entry that is not an output."""

    def __init__(self, slave, entry, sm_type):
        self.slave = slave
        self.entry = entry
        self.sm_type = sm_type
        name = getattr(sm_type, "name", sm_type)
        super().__init__(
            f"Entry {_fmt_entry(entry)} of slave {slave} is mapped to {name}, "
            f"not to OUTPUTS"
        )


class ValueMismatchError(EtherCATError):
    """The value does not fit the mapped entry's type or size."""

    def __init__(self, slave, entry, reason):
        self.slave = slave
        self.entry = entry
        super().__init__(f"Cannot write {_fmt_entry(entry)} of slave {slave}: {reason}")


class AlStateError(EtherCATError):
    """A slave reported a state outside the AL state machine."""

    def __init__(self, slave, state, status):
        self.slave = slave
        self.state = state
        self.status = status
        name = getattr(status, "name", status)
        super().__init__(
            f"Invalid AL state 0x{state:02X} of slave {slave} (AL status {name})"
        )
