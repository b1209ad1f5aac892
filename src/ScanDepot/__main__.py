"""Entrypoint for `python -m ScanDepot`.

Usage:
  python -m ScanDepot [--config config.yaml] COMMAND [args]
"""
import logging

logger = logging.getLogger("scan_depot")


def _run_cli():
    from .cli import main as cli_main
    logger.debug("Dispatching to CLI entrypoint.")
    cli_main()


if __name__ == "__main__":
    _run_cli()
