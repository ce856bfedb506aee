"""
Example: print the CoE object dictionary and PDO map of one slave.

Usage::

    python read_od_list.py <IFNAME> [SLAVE]
"""

import logging
import sys

from ethercat_soem import EtherCATBus


def main():
    if len(sys.argv) < 2:
        print("Usage: read_od_list.py <IFNAME> [SLAVE]")
        return
    adapter = sys.argv[1]
    slave = int(sys.argv[2]) if len(sys.argv) > 2 else 0

    logging.basicConfig(level=logging.INFO)

    bus = EtherCATBus(adapter=adapter)
    bus.open(operational=False)
    try:
        if slave in bus.discovery_errors:
            print(f"Slave {slave}: {bus.discovery_errors[slave]}")
            return

        for obj in bus.object_dictionary.objects(slave):
            print(f"0x{obj.index:04X} {obj.name}")
            for info in bus.object_dictionary.entries(slave, obj.index):
                dtype = info.data_type.name if info.data_type else f"0x{info.data_type_code:04X}"
                print(f"    {info.entry}  {dtype:<12} {info.bit_length:>4} bit  "
                      f"{info.access.op.value:<2}  {info.name}")

        print("\nPDO assignment:")
        for assignment in bus.pdo_assignments(slave):
            print(f"  SM{assignment.sm} ({assignment.sm_type.name})")
            for pdo in assignment.pdos:
                print(f"    0x{pdo.index:04X} {pdo.name}")
                for e in pdo.entries:
                    print(f"      {e.entry}  byte {e.byte_offset} bit {e.bit_offset}  "
                          f"{e.bit_length} bit  {e.name}")
    finally:
        bus.close()


if __name__ == "__main__":
    main()
