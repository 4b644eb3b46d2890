"""Entry point for running the speed test recorder."""

from __future__ import annotations

import argparse
import sys

from speedlog import ApplicationContext, bootstrap
from speedlog.measurements.errors import MeasurementError


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Network speed test recorder")
    parser.add_argument("--config", help="Path to config.yaml", default="config.yaml")
    parser.add_argument("--host", default=None, help="Override web server host")
    parser.add_argument("--port", type=int, default=None, help="Override web server port")
    parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    parser.add_argument("--once", action="store_true", help="Run a single speed test and exit")
    return parser.parse_args(argv)


def run_once(context: ApplicationContext) -> int:
    try:
        record = context.measurements.run_measurement()
    except MeasurementError as exc:
        print(f"{exc.kind}: {exc}", file=sys.stderr)
        return 1
    context.exporter.write_snapshot()
    print(
        f"#{record.id} {record.timestamp.isoformat()} "
        f"ping {record.ping_ms} ms, down {record.download_mbps} Mbit/s, up {record.upload_mbps} Mbit/s"
    )
    return 0


def main(argv=None) -> int:
    args = parse_args(argv)
    context = bootstrap(args.config)
    if args.once:
        return run_once(context)

    context.start()
    host = args.host or context.config.web.host
    port = args.port or context.config.web.port
    try:
        context.web_app.run(host=host, port=port, debug=args.debug, threaded=True)
    finally:
        context.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
