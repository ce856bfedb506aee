"""
Example: bring all slaves to OP and print the process values of each
slave with a GenericSlave handle.

Usage::

    python simple.py <IFNAME> [bus_config.json]
"""

import logging
import sys
import time

from ethercat_soem import EtherCATBus, GenericSlave

CYCLES = 50


def main():
    if len(sys.argv) < 2:
        print("Usage: simple.py <IFNAME> [bus_config.json]")
        return
    config_path = sys.argv[2] if len(sys.argv) > 2 else None

    logging.basicConfig(level=logging.INFO)

    bus = EtherCATBus(adapter=sys.argv[1], cycle_time_ms=5, pdo_config_path=config_path)
    handles = [GenericSlave(info.position) for info in EtherCATBus.discover(sys.argv[1])]
    for handle in handles:
        bus.register_slave(handle)

    bus.open()
    print(f"Bus connected! Expected WKC {bus.expected_wkc}\n")

    try:
        for i in range(1, CYCLES + 1):
            print(f"Cycle {i}, WKC {bus.last_wkc}")
            for handle in handles:
                for entry, value in handle.values.items():
                    print(f"  [{handle.slave_index}] {entry} = {value}")
            time.sleep(0.1)
    except KeyboardInterrupt:
        print("\n\nDisconnecting...")
    finally:
        bus.close()
        print("Done.")


if __name__ == "__main__":
    main()
