#!/usr/bin/env python3
"""
Verifica el contrato del recurso /mercado contra un servicio desplegado.
"""

import argparse
import logging
import sys

from . import config
from .enums import FailureMode
from .runner import ContractRunner


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Mercado API contract verifier")
    parser.add_argument("--base-url", default=config.MERCADO_BASE_URL, help="Base URL of the mercado service")
    parser.add_argument("--timeout", type=float, default=config.REQUEST_TIMEOUT,
                        help="Per-request time budget in seconds")
    parser.add_argument("--batch-size", type=int, default=config.RATE_LIMIT_BATCH_SIZE,
                        help="Concurrent requests used to probe rate limiting")
    parser.add_argument("--unavailable-url", default=config.UNAVAILABLE_BASE_URL,
                        help="Base URL of a host that cannot be reached")
    parser.add_argument("--mode", default=None, choices=[mode.value for mode in FailureMode],
                        help="Failure mode for the local mercado service")
    parser.add_argument("--verbose", action="store_true", help="Log every request")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    runner = ContractRunner(
        base_url=args.base_url,
        timeout=args.timeout,
        batch_size=args.batch_size,
        unavailable_url=args.unavailable_url,
    )
    try:
        if args.mode and not runner.set_failure_mode(args.mode):
            return 2
        runner.run_all()
        return 0 if runner.summary() else 1
    finally:
        runner.close()


if __name__ == "__main__":
    sys.exit(main())
