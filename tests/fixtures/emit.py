#!/usr/bin/env python3
"""Output generator for process tests.

Usage:
    python emit.py [--pid-file PATH] [--delay S] [--count N] [--hex BYTES] [--stderr TEXT] [--sleep S] [--exit-code CODE]

Writes exactly what it is told to and exits; nothing else is printed.

Arguments:
    --pid-file: write this process's pid to PATH first
    --delay: seconds to sleep before writing anything
    --count: write N bytes of "x" to stdout
    --hex: write raw bytes (hex encoded) to stdout
    --stderr: write TEXT to stderr
    --sleep: seconds to sleep before exiting
    --exit-code: exit status (default 0)
"""

from __future__ import annotations

import argparse
import os
import sys
import time


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--pid-file", default="")
    parser.add_argument("--delay", type=float, default=0.0)
    parser.add_argument("--count", type=int, default=0)
    parser.add_argument("--hex", default="")
    parser.add_argument("--stderr", default="")
    parser.add_argument("--sleep", type=float, default=0.0)
    parser.add_argument("--exit-code", type=int, default=0)
    args = parser.parse_args()

    if args.pid_file:
        with open(args.pid_file, "w") as f:
            f.write(str(os.getpid()))
    if args.delay:
        time.sleep(args.delay)

    out = sys.stdout.buffer
    if args.count:
        out.write(b"x" * args.count)
    if args.hex:
        out.write(bytes.fromhex(args.hex))
    out.flush()

    if args.stderr:
        sys.stderr.write(args.stderr)
        sys.stderr.flush()

    if args.sleep:
        time.sleep(args.sleep)
    return args.exit_code


if __name__ == "__main__":
    sys.exit(main())
