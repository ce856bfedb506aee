"""
Example: read a few objects of slave 0 with complete access while the
bus is operational, and report the SDO round-trip times.

Usage::

    python read_sdo.py <IFNAME>
"""

import logging
import sys

from ethercat_soem import EtherCATBus, SdoReadBenchmark

SLAVE = 0
SDO_INDICES = [0x1018, 0x10F1, 0x8094]
ROUNDS = 100


def main():
    if len(sys.argv) < 2:
        print("Usage: read_sdo.py <IFNAME>")
        return

    logging.basicConfig(level=logging.INFO)

    with EtherCATBus(adapter=sys.argv[1], cycle_time_ms=5) as bus:
        for info in bus.slaves():
            print(f"Found [{info.position}] {info.name} "
                  f"(vendor 0x{info.vendor_id:08X}, product 0x{info.product_code:08X})")

        present = [i for i in SDO_INDICES
                   if bus.object_dictionary.find_object(SLAVE, i) is not None]
        for index in sorted(set(SDO_INDICES) - set(present)):
            print(f"0x{index:04X}: not in the object dictionary, skipped")

        bench = SdoReadBenchmark(bus, slave_index=SLAVE, targets=present,
                                 complete=True, rounds=ROUNDS)
        bench.run()
        print("min / mean / max")
        print(bench.report())


if __name__ == "__main__":
    main()
