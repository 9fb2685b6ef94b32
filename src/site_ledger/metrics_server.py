"""
Prometheus metrics server for Site Ledger.

Exposes the ledger's counters and histograms at /metrics. Only metrics of
the process it runs in are visible, so embed it next to the Ledger (or run
it with --db to host a ledger instance in-process).

Usage:
    python -m site_ledger.metrics_server --port 9090 --db ledger.db
"""

import argparse
import time
from pathlib import Path

from site_ledger.kernel.logging import configure_logging, get_logger
from site_ledger.kernel.metrics import start_metrics_server

logger = get_logger(__name__)


def main() -> None:
    """Start the Prometheus metrics server and keep it running"""
    parser = argparse.ArgumentParser(description="Site Ledger Metrics Server")
    parser.add_argument(
        "--port",
        type=int,
        default=9090,
        help="Port to listen on (default: 9090)",
    )
    parser.add_argument(
        "--db",
        type=Path,
        default=None,
        help="Ledger database to load (publishes rebuild and budget gauges)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs in JSON format (default: False)",
    )

    args = parser.parse_args()

    configure_logging(json_output=args.json_logs, log_level=args.log_level)

    if args.db is not None:
        from site_ledger.ledger import Ledger

        ledger = Ledger(args.db)
        logger.info("Ledger loaded", db_path=str(args.db), **ledger.health())

    logger.info(
        "Starting Prometheus metrics server",
        port=args.port,
        endpoint=f"http://0.0.0.0:{args.port}/metrics",
    )
    start_metrics_server(port=args.port)

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        logger.info("Shutting down metrics server")


if __name__ == "__main__":
    main()
