"""
EtherCAT SOEM — Object dictionary discovery
=============================================

Walks the CoE SDO information service of a slave (object list, object
description, entry description) and builds an immutable, queryable
:class:`ObjectDictionary`.

The engine passed to :func:`read_od_list` must provide::

    read_od_list(slave)                -> list[int]          object indices
    read_od_description(slave, item)   -> ObjectDescription
    read_oe_list(slave, item)          -> list[EntryDescription]
"""

import logging
from collections.abc import Mapping
from typing import NamedTuple, Optional

from .exceptions import (
    EntryNotFoundError,
    IndexNotFoundError,
    OdDescriptionError,
    OeListError,
    SlaveNotFoundError,
)
from .types import DataType, EntryAccess, EntryIndex, EntryInfo, ObjectInfo


logger = logging.getLogger(__name__)


class ObjectDescription(NamedTuple):
    """Raw answer of a "get object description" request.

    ``max_subindex`` is ``None`` when the engine cannot report it; the
    length of the entry list is used instead.
    """

    index: int
    data_type: int
    object_code: int
    max_subindex: Optional[int]
    name: str


class EntryDescription(NamedTuple):
    """Raw answer of a "get entry description" request for one subindex."""

    data_type: int
    bit_length: int
    obj_access: int
    name: str


_MISSING_ENTRY = EntryDescription(0, 0, 0, "")


def _entry_info(slave, index, subindex, raw):
    data_type = DataType.from_code(raw.data_type)
    if data_type is None or raw.bit_length == 0:
        logger.warning(
            f"Slave {slave}: invalid entry at 0x{index:04X}:{subindex:02X}: "
            f"data type 0x{raw.data_type:04X} with bit length {raw.bit_length}"
        )
    return EntryInfo(
        entry=EntryIndex(index, subindex),
        data_type=data_type,
        bit_length=raw.bit_length,
        access=EntryAccess.from_bitmap(raw.obj_access),
        name=raw.name,
        data_type_code=raw.data_type,
    )


def read_od_list(engine, slave):
    """Read the complete CoE object dictionary of *slave*.

    Returns:
        tuple[ObjectInfo, ...]: Objects in the order the slave lists them.

    Raises:
        OdListError: The object list request failed.
        OdDescriptionError / OeListError: A description request failed;
            ``exc.completed`` holds the objects read before it.
    """
    indices = engine.read_od_list(slave)
    logger.debug(f"Slave {slave}: CoE object description found {len(indices)} entries")

    objects = []
    for item in range(len(indices)):
        try:
            desc = engine.read_od_description(slave, item)
            raw_entries = engine.read_oe_list(slave, item)
        except (OdDescriptionError, OeListError) as exc:
            exc.completed = tuple(objects)
            raise

        max_subindex = desc.max_subindex
        if max_subindex is None:
            max_subindex = max(len(raw_entries) - 1, 0)

        entries = []
        for sub in range(max_subindex + 1):
            raw = raw_entries[sub] if sub < len(raw_entries) else _MISSING_ENTRY
            entries.append(_entry_info(slave, desc.index, sub, raw))

        objects.append(ObjectInfo(
            position=item,
            index=desc.index,
            object_code=desc.object_code,
            max_subindex=max_subindex,
            name=desc.name,
            entries=tuple(entries),
        ))
    return tuple(objects)


class ObjectDictionary(Mapping):
    """Per-slave object dictionaries discovered in one configuration pass.

    Maps a zero-based slave position to the tuple of :class:`ObjectInfo`
    read from that slave.  Instances are never modified; a new
    configuration pass builds a new instance.
    """

    def __init__(self, objects_by_slave=None):
        self._slaves = {
            int(slave): tuple(objects)
            for slave, objects in (objects_by_slave or {}).items()
        }
        self._index = {
            slave: {obj.index: obj for obj in objects}
            for slave, objects in self._slaves.items()
        }

    def __getitem__(self, slave):
        return self._slaves[slave]

    def __iter__(self):
        return iter(self._slaves)

    def __len__(self):
        return len(self._slaves)

    def __repr__(self):
        sizes = ", ".join(f"{s}: {len(o)}" for s, o in self._slaves.items())
        return f"ObjectDictionary({{{sizes}}})"

    def objects(self, slave):
        try:
            return self._slaves[slave]
        except KeyError:
            raise SlaveNotFoundError(slave) from None

    def find_object(self, slave, index):
        return self._index.get(slave, {}).get(index)

    def object(self, slave, index):
        """Return the :class:`ObjectInfo` at *index* or raise."""
        if slave not in self._slaves:
            raise SlaveNotFoundError(slave)
        obj = self.find_object(slave, index)
        if obj is None:
            raise IndexNotFoundError(slave, index)
        return obj

    def find_entry(self, slave, entry):
        obj = self.find_object(slave, entry[0])
        if obj is None:
            return None
        return obj.entry(entry[1])

    def entry(self, slave, entry):
        """Return the :class:`EntryInfo` at *entry* or raise EntryNotFoundError."""
        if slave not in self._slaves:
            raise SlaveNotFoundError(slave)
        info = self.find_entry(slave, entry)
        if info is None:
            raise EntryNotFoundError(slave, EntryIndex(*entry))
        return info

    def entries(self, slave, index, include_subindex0=False):
        """Sub-entries of one object; slot 0 only on request.

        Objects without sub-entries (VAR) hold their value in slot 0, which
        is always returned for them.
        """
        obj = self.object(slave, index)
        if include_subindex0 or obj.max_subindex == 0:
            return obj.entries
        return obj.entries[1:]
