"""Command-line interface for the asset registry."""

import argparse
import json
import logging
import os
import shutil
import sys

from .config import RegistryConfig
from .core import RegistryError, setup_logging

logger = logging.getLogger("scan_depot")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ScanDepot",
        description="Medical image asset registry",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  ScanDepot upload scan.dcm
  ScanDepot upload-folder --label CT_Head series/*.dcm
  ScanDepot upload-archive study.zip
  ScanDepot list
  ScanDepot download scan-1700000000000-123456789.dcm -o ./out
  ScanDepot delete scan-1700000000000-123456789.dcm
  ScanDepot --config depot.yaml orphans --prune
  ScanDepot generate-config depot.yaml
        """
    )
    parser.add_argument("--config", "-c", help="Path to config YAML")
    parser.add_argument("--storage-root", "-s", help="Storage root directory")
    parser.add_argument("--log-level",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    parser.add_argument("--progress", action="store_true",
                        help="Show progress bars for folder and archive uploads")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("upload", help="Store a single file")
    p.add_argument("file", help="File to store, or - to read from stdin")
    p.add_argument("--name", help="Original file name (required when reading stdin)")
    p.add_argument("--content-type", help="Declared media type")

    p = sub.add_parser("upload-folder", help="Store several files as one folder asset")
    p.add_argument("files", nargs="+")
    p.add_argument("--label", help="Folder display name")

    p = sub.add_parser("upload-archive", help="Extract a zip archive into a folder asset")
    p.add_argument("archive")

    p = sub.add_parser("ingest", help="Store files, routing by upload shape")
    p.add_argument("files", nargs="+")
    p.add_argument("--label", help="Store the files as a folder with this name")

    p = sub.add_parser("list", help="List assets, newest first")
    p.add_argument("--strict", action="store_true",
                   help="Fail on the first corrupt metadata record")

    p = sub.add_parser("show", help="Print one asset's full metadata record")
    p.add_argument("id")

    p = sub.add_parser("folder", help="List the member files of a folder asset")
    p.add_argument("id")

    p = sub.add_parser("download", help="Copy an asset out of the registry")
    p.add_argument("id")
    p.add_argument("--output", "-o",
                   help="Destination path or directory (default: original name in cwd)")

    p = sub.add_parser("delete", help="Delete an asset")
    p.add_argument("id")

    p = sub.add_parser("orphans", help="Report content with no metadata record")
    p.add_argument("--prune", action="store_true", help="Remove the orphans")
    p.add_argument("--min-age", type=float, default=3600.0,
                   help="Ignore objects younger than this many seconds (default: 3600)")

    p = sub.add_parser("generate-config", help="Write a default config YAML")
    p.add_argument("path", nargs="?", default="config.yaml")

    return parser


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _load_config(args) -> RegistryConfig:
    if args.config:
        if not os.path.exists(args.config):
            logger.error("Config file not found: %s", args.config)
            print(f"Error: Config file not found: {args.config}", file=sys.stderr)
            sys.exit(1)
        try:
            config = RegistryConfig.from_yaml(args.config)
        except ValueError as e:
            logger.error("Invalid config file '%s': %s", args.config, e)
            print(f"Error: Invalid config: {e}", file=sys.stderr)
            sys.exit(1)
    else:
        config = RegistryConfig()

    if args.storage_root:
        config.storage_root = args.storage_root
    if args.log_level:
        config.log_level = args.log_level
    if args.progress or sys.stderr.isatty():
        config.show_progress = True

    try:
        config.validate()
    except ValueError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    return config


def _download(registry, asset_id: str, output) -> str:
    target = registry.resolve_download(asset_id)
    dest = output or target.original_name
    if os.path.isdir(dest):
        dest = os.path.join(dest, target.original_name)
    if os.path.lexists(dest):
        raise FileExistsError(f"Refusing to overwrite {dest}")
    if target.is_folder:
        shutil.copytree(target.path, dest)
    else:
        shutil.copyfile(target.path, dest)
    return dest


def _run(args, registry) -> None:
    from .ingest import UploadedFile

    cmd = args.command
    if cmd == "upload":
        if args.file == "-":
            upload = registry.spool(args.name, sys.stdin.buffer, args.content_type)
        else:
            upload = UploadedFile.from_path(args.file, args.name, args.content_type)
        try:
            record = registry.store_file(upload)
        finally:
            upload.discard()
        _emit(record.summary())
    elif cmd == "upload-folder":
        uploads = [UploadedFile.from_path(f) for f in args.files]
        _emit(registry.store_folder(args.label, uploads).summary())
    elif cmd == "upload-archive":
        _emit(registry.store_archive(UploadedFile.from_path(args.archive)).summary())
    elif cmd == "ingest":
        uploads = [UploadedFile.from_path(f) for f in args.files]
        _emit(registry.ingest(uploads, label=args.label).summary())
    elif cmd == "list":
        listing = registry.list(strict=args.strict)
        _emit({
            "files": listing.summaries(),
            "totalBytes": listing.total_bytes,
            "skipped": [{"sidecar": s.sidecar, "reason": s.reason} for s in listing.skipped],
            "missingContent": listing.missing_content,
        })
    elif cmd == "show":
        _emit(registry.get(args.id).to_dict())
    elif cmd == "folder":
        _emit({
            "id": args.id,
            "files": [
                {"name": m.name, "path": m.relpath, "size": m.size}
                for m in registry.folder_contents(args.id)
            ],
        })
    elif cmd == "download":
        dest = _download(registry, args.id, args.output)
        _emit({"id": args.id, "savedTo": dest})
    elif cmd == "delete":
        registry.delete(args.id)
        _emit({"success": True, "id": args.id})
    elif cmd == "orphans":
        if args.prune:
            _emit({"removed": registry.prune_orphans(args.min_age)})
        else:
            _emit({"orphans": registry.find_orphans(args.min_age)})


def main(argv=None):
    """Parse CLI arguments and run one registry command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command == "upload" and args.file == "-" and not args.name:
        parser.error("--name is required when reading the upload from stdin")

    if args.command == "generate-config":
        dest = args.path
        if os.path.isdir(dest):
            dest = os.path.join(dest, "config.yaml")
        RegistryConfig().to_yaml(dest)
        logger.info("Generated default %s", dest)
        print(f"Generated default {dest}")
        return

    # Ensure early validation warnings from from_yaml() are visible on stderr
    # before the configured logging is installed.
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s: %(message)s")
    config = _load_config(args)
    setup_logging(config)

    from .registry import AssetRegistry
    try:
        registry = AssetRegistry(config)
        _run(args, registry)
    except RegistryError as exc:
        logger.error("%s: %s", exc.kind, exc)
        print(json.dumps(exc.to_dict(), ensure_ascii=False), file=sys.stderr)
        sys.exit(2)
    except OSError as exc:
        logger.error("I/O error: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
