"""
Health check HTTP server for liveness and readiness probes.

Exposes the state of the ledger database and, when a Ledger instance is
attached, the counts of work waiting on people (unverified invoices,
unapproved payments, exhausted budgets).

Usage:
    python -m site_ledger.health_server --db ledger.db --port 8080
"""

import argparse
import sqlite3
from pathlib import Path
from typing import Any

from flask import Flask, jsonify

from site_ledger import __version__
from site_ledger.kernel.logging import configure_logging, get_logger

logger = get_logger(__name__)

SERVICE_NAME = "site-ledger"

app = Flask(__name__)

# Set by initialize_health_server()
_db_path: Path | None = None
_ledger: Any = None


def initialize_health_server(db_path: str | Path, ledger: Any = None) -> None:
    """
    Point the health server at a ledger database.

    Args:
        db_path: Path to the ledger's SQLite database
        ledger: Optional Ledger instance for the detailed report
    """
    global _db_path, _ledger
    _db_path = Path(db_path)
    _ledger = ledger
    logger.info("Health server initialized", db_path=str(_db_path))


def _count_events(db_path: Path) -> tuple[int, int, float]:
    """Event count, stream count and file size in MB, read-only"""
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True, timeout=1.0)
    try:
        event_count = conn.execute("SELECT COUNT(*) FROM events").fetchone()[0]
        stream_count = conn.execute("SELECT COUNT(DISTINCT stream_id) FROM events").fetchone()[0]
        page_count = conn.execute("PRAGMA page_count").fetchone()[0]
        page_size = conn.execute("PRAGMA page_size").fetchone()[0]
    finally:
        conn.close()
    return event_count, stream_count, round(page_count * page_size / (1024 * 1024), 2)


@app.route("/health/live", methods=["GET"])
def liveness() -> tuple[Any, int]:
    """Liveness probe - the process is up"""
    return jsonify({"status": "alive", "service": SERVICE_NAME}), 200


@app.route("/health/ready", methods=["GET"])
def readiness() -> tuple[Any, int]:
    """
    Readiness probe - the ledger database can be queried.

    Returns:
        200 with the event count when ready, 503 with a reason otherwise
    """
    if _db_path is None:
        logger.error("Readiness check failed: DB path not initialized")
        return jsonify({"status": "not_ready", "reason": "database_path_not_initialized"}), 503

    if not _db_path.exists():
        logger.error("Readiness check failed: DB file does not exist", db_path=str(_db_path))
        return (
            jsonify(
                {
                    "status": "not_ready",
                    "reason": "database_file_not_found",
                    "db_path": str(_db_path),
                }
            ),
            503,
        )

    try:
        event_count, _, _ = _count_events(_db_path)
    except sqlite3.Error as e:
        logger.error("Readiness check failed: DB error", error=str(e))
        return (
            jsonify({"status": "not_ready", "reason": "database_error", "error": str(e)}),
            503,
        )

    logger.debug("Readiness check passed", event_count=event_count)
    return jsonify({"status": "ready", "database": "accessible", "event_count": event_count}), 200


@app.route("/health", methods=["GET"])
def detailed_health() -> tuple[Any, int]:
    """Detailed health - database stats plus the ledger summary if attached"""
    health_data: dict[str, Any] = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": __version__,
    }

    if _db_path and _db_path.exists():
        try:
            event_count, stream_count, size_mb = _count_events(_db_path)
            health_data["database"] = {
                "status": "healthy",
                "path": str(_db_path),
                "event_count": event_count,
                "stream_count": stream_count,
                "size_mb": size_mb,
            }
        except sqlite3.Error as e:
            logger.error("Database health check failed", error=str(e))
            health_data["database"] = {"status": "unhealthy", "error": str(e)}
            health_data["status"] = "degraded"
    else:
        health_data["database"] = {"status": "not_initialized"}
        health_data["status"] = "degraded"

    if _ledger is not None:
        try:
            health_data["ledger"] = _ledger.health()
        except Exception as e:
            logger.warning("Could not compute ledger summary", error=str(e))
            health_data["ledger"] = {"status": "unavailable", "error": str(e)}

    status_code = 200 if health_data["status"] == "healthy" else 503
    return jsonify(health_data), status_code


def run_health_server(port: int = 8080, debug: bool = False) -> None:
    """
    Run the health check server.

    Args:
        port: Port to listen on (default: 8080)
        debug: Enable Flask debug mode (default: False)
    """
    logger.info("Starting health check server", port=port)
    app.run(host="0.0.0.0", port=port, debug=debug)


def main() -> None:
    parser = argparse.ArgumentParser(description="Site Ledger Health Server")
    parser.add_argument("--db", type=Path, required=True, help="Ledger database path")
    parser.add_argument("--port", type=int, default=8080, help="Port to listen on (default: 8080)")
    parser.add_argument("--json-logs", action="store_true", help="Output logs in JSON format")
    args = parser.parse_args()

    configure_logging(json_output=args.json_logs)

    from site_ledger.ledger import Ledger

    initialize_health_server(args.db, Ledger(args.db) if args.db.exists() else None)
    run_health_server(port=args.port)


if __name__ == "__main__":
    main()
