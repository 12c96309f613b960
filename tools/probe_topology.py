#!/usr/bin/env python3
"""One-shot topology probe.

Example:
    python tools/probe_topology.py --uri http://localhost:8080 --verbose

Polls the cluster REST endpoint once, builds a topology snapshot and prints it
as JSON. Exit code 1 means the cluster answered with an error, 2 means it is
unreachable.
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from topo.rest import RestExecutor
from topo.snapshot import build_snapshot, decode_nodes


def main() -> int:
    parser = argparse.ArgumentParser(description="Print the current cluster topology snapshot")
    parser.add_argument("--uri", default="http://localhost:8080", help="cluster node REST URI")
    parser.add_argument("--login", default=None)
    parser.add_argument("--password", default=None)
    parser.add_argument("--timeout", type=float, default=10.0, help="request timeout in seconds")
    parser.add_argument("--verbose", action="store_true", help="request node metrics")
    parser.add_argument("--raw", action="store_true", help="print the raw node list instead of the snapshot")
    args = parser.parse_args()

    rest = RestExecutor(args.uri, timeout_s=args.timeout, login=args.login, password=args.password)
    try:
        res = rest.topology(full=False, verbose=args.verbose)
        if not res.success:
            print(f"Cluster returned status {res.status}: {res.error}", file=sys.stderr)
            return 1

        if args.raw:
            print(json.dumps(json.loads(res.data), indent=2))
            return 0

        top = build_snapshot(decode_nodes(res.data))
        if not top.empty:
            top.active = rest.active(top.version, top.first_node_id())
        print(json.dumps(top.to_dict(), indent=2))
        return 0
    except ConnectionRefusedError as e:
        print(f"Cluster unreachable: {e}", file=sys.stderr)
        return 2
    finally:
        rest.close()


if __name__ == "__main__":
    sys.exit(main())
