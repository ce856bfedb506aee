"""
EtherCAT SOEM
~~~~~~~~~~~~~

EtherCAT master library built on PySOEM.  Discovers each slave's CoE
object dictionary and PDO assignment, serves typed SDO access and
decodes/encodes mapped process values in the shared I/O image.

Basic usage::

    from ethercat_soem import EtherCATBus

    with EtherCATBus(adapter="eth0", cycle_time_ms=1) as bus:
        for entry, value in bus.pdo_values(0):
            print(entry, value)

Object dictionary::

    bus = EtherCATBus(adapter="eth0")
    bus.open(operational=False)
    for obj in bus.object_dictionary.objects(0):
        print(f"0x{obj.index:04X} {obj.name}")
    bus.close()

:license: MIT
"""

from .bus import EtherCATBus
from .config import BusConfig, load_bus_config
from .engine import SlaveInfo, SoemEngine
from .od import ObjectDictionary
from .slave import GenericSlave
from .pdo import load_pdo_config, get_slave_pdo, configure_pdo_mapping
from .al_status import AlStatus, al_status_text
from .types import (
    Access,
    AlState,
    DataType,
    EntryAccess,
    EntryIndex,
    EntryInfo,
    ObjectInfo,
    PdoAssignment,
    PdoEntryInfo,
    PdoInfo,
    SyncManagerType,
    Value,
)
from .exceptions import (
    EtherCATError,
    ConnectionError,
    CommunicationError,
    ConfigurationError,
    CodecError,
    SdoReadError,
    SdoWriteError,
    SlaveNotFoundError,
    IndexNotFoundError,
    EntryNotFoundError,
    WrongDirectionError,
    ValueMismatchError,
    AlStateError,
)
from .sdo_benchmark import EntryTiming, SdoReadBenchmark

__version__ = "0.1.0"
__all__ = [
    "EtherCATBus",
    "BusConfig",
    "load_bus_config",
    "SoemEngine",
    "SlaveInfo",
    "ObjectDictionary",
    "GenericSlave",
    "SdoReadBenchmark",
    "EntryTiming",
    "load_pdo_config",
    "get_slave_pdo",
    "configure_pdo_mapping",
    "AlStatus",
    "al_status_text",
    "Access",
    "AlState",
    "DataType",
    "EntryAccess",
    "EntryIndex",
    "EntryInfo",
    "ObjectInfo",
    "PdoAssignment",
    "PdoEntryInfo",
    "PdoInfo",
    "SyncManagerType",
    "Value",
    "EtherCATError",
    "ConnectionError",
    "CommunicationError",
    "ConfigurationError",
    "CodecError",
    "SdoReadError",
    "SdoWriteError",
    "SlaveNotFoundError",
    "IndexNotFoundError",
    "EntryNotFoundError",
    "WrongDirectionError",
    "ValueMismatchError",
    "AlStateError",
    "__version__",
]
