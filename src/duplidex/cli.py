#!/usr/bin/env python3
"""
Duplidex CLI: Command line interface for the persistent duplicate index.
Drives the same engine as the GUI worker with console-based interaction.
All removals are reversible: files are moved into a dated quarantine folder and
can be restored until they are explicitly discarded to the system trash.
"""
from __future__ import annotations  # Enable postponed evaluation of annotations (PEP 563)
import argparse
import logging
import os
import signal
import sys
import time
from pathlib import Path
from typing import Dict, List, NoReturn, Optional

from duplidex.aliases import (
    CATEGORY_ALIASES, CATEGORY_CHOICES, CATEGORY_HELP_TEXT,
    SORT_ALIASES, SORT_CHOICES, SORT_HELP_TEXT,
    EPILOG_TEXT
)
from duplidex.commands import DeduplicationCommand
from duplidex.core.cancellation import CancellationToken
from duplidex.core.errors import DuplidexError
from duplidex.core.events import (
    HASHING_PROGRESS, PROCESSING_PROGRESS, SCAN_PROGRESS,
)
from duplidex.core.folders import FolderFingerprintEngine
from duplidex.core.index import FileIndex
from duplidex.core.models import (
    DuplicateGroup, DuplicateQuery, EngineConfig, RunOutcome, ScanParams,
)
from duplidex.services.duplicate_service import DuplicateService
from duplidex.services.quarantine_service import MoveResult, QuarantineService
from duplidex.utils.convert_utils import ConvertUtils

LOG_FORMAT = "%(levelname)-8s | %(name)-25s | %(message)s"

# Page size used when --keep-one walks every duplicate group
KEEP_ONE_PAGE_SIZE = 500

PROGRESS_LABELS = {
    SCAN_PROGRESS: "scanning",
    PROCESSING_PROGRESS: "partial hash",
    HASHING_PROGRESS: "full hash",
}


class CLIApplication:
    """Main CLI application controller."""

    def __init__(self):
        self.start_time: float = time.time()
        self.verbose: bool = False
        self.quiet: bool = False
        self.token = CancellationToken()

        # Fix encoding for Windows consoles to prevent UnicodeEncodeError
        for stream in (sys.stdout, sys.stderr):
            if hasattr(stream, "reconfigure"):
                stream.reconfigure(encoding='utf-8')

    @staticmethod
    def parse_args(args=None) -> argparse.Namespace:
        """Parse command-line arguments."""
        defaults = EngineConfig()
        parser = argparse.ArgumentParser(
            prog="duplidex",
            description="Duplidex: incremental duplicate file finder with reversible quarantine",
            formatter_class=argparse.RawTextHelpFormatter,
            epilog=EPILOG_TEXT
        )
        parser.add_argument(
            "--db",
            default=defaults.db_path,
            type=str,
            help=f"Index database file. Default: {defaults.db_path}"
        )
        parser.add_argument(
            "--quarantine-dir",
            default=defaults.quarantine_root,
            type=str,
            dest="quarantine_dir",
            help=f"Quarantine base directory. Default: {defaults.quarantine_root}"
        )
        verbosity = parser.add_mutually_exclusive_group()
        verbosity.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output"
        )
        verbosity.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Show progress, statistics and informational logging"
        )

        sub = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

        # scan
        scan = sub.add_parser(
            "scan",
            help="Index roots and hash duplicate candidates",
            formatter_class=argparse.RawTextHelpFormatter
        )
        scan.add_argument("roots", nargs="+", metavar="ROOT", help="Directories to scan")
        scan.add_argument(
            "--category", "-c",
            nargs="+",
            default=[],
            choices=CATEGORY_CHOICES,
            dest="categories",
            metavar="CATEGORY",
            help=CATEGORY_HELP_TEXT
        )
        scan.add_argument(
            "--include-system",
            action="store_true",
            help="Also descend into hidden and system directories (.git, node_modules, AppData, ...)"
        )
        scan.add_argument(
            "--force-refresh",
            action="store_true",
            help="Drop the whole index and re-read everything"
        )
        scan.add_argument(
            "--scan-workers",
            type=int,
            default=defaults.scan_concurrency,
            metavar="N",
            help=f"Directory traversal threads. Default: {defaults.scan_concurrency}"
        )
        scan.add_argument(
            "--hash-workers",
            type=int,
            default=defaults.hash_concurrency,
            metavar="N",
            help=f"Hashing threads. Default: {defaults.hash_concurrency}"
        )

        # duplicates
        dups = sub.add_parser("duplicates", help="List duplicate groups")
        dups.add_argument("--search", "-s", default="", help="Only groups with a path containing TEXT")
        dups.add_argument("--min-size", "-m", default="0",
                          help="Minimum file size (e.g., 500KB, 1MB). Default: 0")
        dups.add_argument("--limit", type=int, default=50, help="Groups per page. Default: 50")
        dups.add_argument("--offset", type=int, default=0, help="Groups to skip. Default: 0")

        sub.add_parser("folders", help="List folders with identical contents")
        sub.add_parser("stats", help="Show duplicate statistics")

        # exclude
        exclude = sub.add_parser("exclude", help="Manage folders that are never indexed")
        exclude.add_argument("action", choices=["add", "remove", "list"])
        exclude.add_argument("path", nargs="?", help="Folder for add/remove")

        # quarantine
        quarantine = sub.add_parser(
            "quarantine",
            help="Move files into the quarantine folder",
            formatter_class=argparse.RawTextHelpFormatter
        )
        quarantine.add_argument("ids", nargs="*", metavar="ID",
                                help="File ids as shown by 'duplicates'")
        quarantine.add_argument(
            "--keep-one",
            action="store_true",
            help="Keep one file per duplicate group and quarantine the rest. "
                 "Always shows preview before moving."
        )
        quarantine.add_argument(
            "--sort",
            choices=SORT_CHOICES,
            default="shortest-path",
            help=SORT_HELP_TEXT
        )
        quarantine.add_argument(
            "--force",
            action="store_true",
            help="Skip confirmation prompt when used with --keep-one (for automation/scripts)"
        )

        sub.add_parser("history", help="List quarantined files, newest first")

        restore = sub.add_parser("restore", help="Move quarantined files back")
        restore.add_argument("ids", nargs="+", metavar="ID", help="History ids as shown by 'history'")

        discard = sub.add_parser("discard", help="Send quarantined files to the system trash")
        discard.add_argument("ids", nargs="+", metavar="ID", help="History ids as shown by 'history'")
        discard.add_argument("--force", action="store_true", help="Skip confirmation prompt")

        return parser.parse_args(args)

    def configure_logging(self) -> None:
        if self.verbose:
            level = logging.INFO
        elif self.quiet:
            level = logging.ERROR
        else:
            level = logging.WARNING
        logging.basicConfig(level=level, format=LOG_FORMAT)
        logging.getLogger().setLevel(level)

    def validate_args(self, args: argparse.Namespace) -> None:
        """Validate command-line arguments before execution."""
        if args.command == "scan":
            for root in args.roots:
                root_path = Path(root).expanduser()
                if not root_path.exists():
                    self.error_exit(f"Directory not found: {root}")
                if not root_path.is_dir():
                    self.error_exit(f"Path is not a directory: {root}")
            if args.scan_workers < 1 or args.hash_workers < 1:
                self.error_exit("Worker counts must be at least 1")

        elif args.command == "quarantine":
            if args.force and not args.keep_one:
                self.error_exit("--force can only be used with --keep-one")
            if args.keep_one and args.ids:
                self.error_exit("Pass either file ids or --keep-one, not both")
            if not args.keep_one and not args.ids:
                self.error_exit("Nothing to quarantine: pass file ids or --keep-one")
            if args.keep_one and not args.force:
                self.require_tty()

        elif args.command == "discard":
            if not args.force:
                self.require_tty()

        elif args.command == "exclude":
            if args.action in ("add", "remove") and not args.path:
                self.error_exit(f"'exclude {args.action}' needs a PATH")

    def require_tty(self) -> None:
        # Prevent interactive confirmation in non-TTY environments
        if not sys.stdin.isatty() or not sys.stdout.isatty():
            self.error_exit(
                "Cannot request interactive confirmation in non-interactive session.\n"
                "Use --force flag to proceed without confirmation when piping output or running in scripts."
            )

    def confirm(self, question: str) -> bool:
        response = input(f"{question} [y/N]: ")
        return response.strip().lower() in ("y", "yes")

    def progress_callback(self, name: str, payload: Dict) -> None:
        """CLI event callback - shows progress in console."""
        if not self.verbose or name not in PROGRESS_LABELS:
            return
        label = PROGRESS_LABELS[name]
        total = payload.get("total")
        if total:
            current = payload.get("current", 0)
            percent = (current / total) * 100
            sys.stderr.write(f"\r  [{label}] {current}/{total} ({percent:.1f}%)")
        else:
            sys.stderr.write(f"\r  [{label}] {payload.get('count', 0)} files indexed...")
        sys.stderr.flush()

    def _on_sigint(self, signum, frame) -> None:
        # First Ctrl+C cancels cooperatively, a second one interrupts hard.
        signal.signal(signal.SIGINT, signal.default_int_handler)
        self.token.cancel()
        print("\n⚠️  Cancelling... (press Ctrl+C again to abort immediately)", file=sys.stderr)

    # =============================
    # Commands
    # =============================

    def cmd_scan(self, args: argparse.Namespace, index: FileIndex) -> None:
        categories = [CATEGORY_ALIASES[c] for c in args.categories]
        params = ScanParams(
            roots=[str(Path(r).expanduser()) for r in args.roots],
            categories=list(dict.fromkeys(categories)),
            ignore_system_paths=not args.include_system,
            force_refresh=args.force_refresh,
        )
        config = EngineConfig(
            db_path=args.db,
            quarantine_root=args.quarantine_dir,
            scan_concurrency=args.scan_workers,
            hash_concurrency=args.hash_workers,
        )
        command = DeduplicationCommand(index, config)

        if not self.quiet:
            print(f"Scanning: {', '.join(params.roots)}")

        previous_handler = signal.getsignal(signal.SIGINT)
        signal.signal(signal.SIGINT, self._on_sigint)
        try:
            result = command.execute(params, token=self.token, event_callback=self.progress_callback)
        finally:
            signal.signal(signal.SIGINT, previous_handler)
            if self.verbose:
                sys.stderr.write("\n")

        if result.outcome is RunOutcome.INVALID:
            self.error_exit(result.message)

        if result.scan and not self.quiet:
            print(f"Indexed {result.scan.scanned} files "
                  f"({result.scan.upserted} new/changed, {result.scan.pruned} removed)")
        if self.verbose and result.processing:
            print("\n" + result.processing.print_summary())

        if result.outcome is RunOutcome.CANCELLED:
            print("⚠️  Operation cancelled by user (Ctrl+C). Completed work was saved.", file=sys.stderr)
            sys.exit(130)

        if not self.quiet:
            self.print_stats(index)

    def cmd_duplicates(self, args: argparse.Namespace, index: FileIndex) -> None:
        query = DuplicateQuery(
            search=args.search,
            min_size=ConvertUtils.human_to_bytes(args.min_size),
            limit=args.limit,
            offset=args.offset,
        )
        self.output_groups(index.duplicate_groups(query), first_number=args.offset + 1)

    def cmd_folders(self, args: argparse.Namespace, index: FileIndex) -> None:
        groups = FolderFingerprintEngine(index).find_groups()
        if not groups:
            print("No duplicate folders found.")
            return
        print(f"Found {len(groups)} groups of identical folders")
        for idx, group in enumerate(groups, 1):
            size_str = ConvertUtils.bytes_to_human(group.total_size)
            print(f"\n📁 Group {idx} | Files: {group.file_count} | Size: {size_str}")
            for folder in group.folders:
                print(f"   {folder}")

    def cmd_stats(self, args: argparse.Namespace, index: FileIndex) -> None:
        self.print_stats(index)

    def cmd_exclude(self, args: argparse.Namespace, index: FileIndex) -> None:
        if args.action == "list":
            folders = index.get_excluded_folders()
            if not folders:
                print("No excluded folders.")
            for folder in folders:
                print(folder.path)
            return

        path = os.path.normpath(os.path.abspath(os.path.expanduser(args.path)))
        if args.action == "add":
            purged = index.add_excluded_folder(path)
            if not self.quiet:
                print(f"✅ Excluded {path} ({purged} indexed files removed)")
        elif index.remove_excluded_folder(path):
            if not self.quiet:
                print(f"✅ {path} will be scanned again")
        else:
            self.warning(f"Not an excluded folder: {path}")

    def cmd_quarantine(self, args: argparse.Namespace, index: FileIndex) -> None:
        service = QuarantineService(index, args.quarantine_dir)
        if not args.keep_one:
            self.report_moves(service.move_to_quarantine(ConvertUtils.parse_ids(args.ids)),
                              "moved to quarantine")
            return

        groups = self.collect_all_groups(index)
        if not groups:
            if not self.quiet:
                print("No duplicate groups found.")
            return

        ids, kept = DuplicateService.keep_only_one_file_per_group(groups, SORT_ALIASES[args.sort])
        if not ids:
            if not self.quiet:
                print("No files to quarantine (all groups already have only one file).")
            return

        space_saved = sum(group.wasted_bytes for group in groups)
        space_saved_str = ConvertUtils.bytes_to_human(space_saved)

        # Always show preview before moving anything
        print()
        reason = "shortest path" if args.sort == "shortest-path" else "shortest filename"
        for idx, group in enumerate(groups, 1):
            size_str = ConvertUtils.bytes_to_human(group.size)
            print(f"📁 Group {idx} | Size: {size_str} | Files: {len(group.files)}")
            print("-" * 60)
            print(f"   [KEEP] {group.files[0].path}")
            print(f"          Reason: {reason}")
            for file in group.files[1:]:
                print(f"   [MOVE] {file.path}")
            print()

        print("=" * 60)
        print(f"Summary: Keep 1 file per group ({len(kept)} files preserved, {len(ids)} files moved)")
        print(f"Total space freed: {space_saved_str}")
        print()

        if args.force:
            print("⚠️  WARNING: --force flag skips confirmation. Proceeding...")
        elif not self.confirm(f"Move {len(ids)} files to {args.quarantine_dir}?"):
            print("Cancelled by user.")
            return

        self.report_moves(service.move_to_quarantine(ids), "moved to quarantine")

    def cmd_history(self, args: argparse.Namespace, index: FileIndex) -> None:
        records = QuarantineService(index, args.quarantine_dir).get_history()
        if not records:
            print("Quarantine is empty.")
            return
        for record in records:
            when = ConvertUtils.datetime_to_human(record.timestamp)
            print(f"[{record.id}] {when}  {record.original_path}")
            print(f"      -> {record.moved_path}")

    def cmd_restore(self, args: argparse.Namespace, index: FileIndex) -> None:
        service = QuarantineService(index, args.quarantine_dir)
        self.report_moves(service.restore(ConvertUtils.parse_ids(args.ids)), "restored")

    def cmd_discard(self, args: argparse.Namespace, index: FileIndex) -> None:
        ids = ConvertUtils.parse_ids(args.ids)
        if args.force:
            print("⚠️  WARNING: --force flag skips confirmation. Proceeding...")
        elif not self.confirm(f"Send {len(ids)} quarantined files to the trash?"):
            print("Cancelled by user.")
            return
        service = QuarantineService(index, args.quarantine_dir)
        self.report_moves(service.discard(ids), "moved to trash")

    # =============================
    # Output helpers
    # =============================

    @staticmethod
    def collect_all_groups(index: FileIndex) -> List[DuplicateGroup]:
        groups: List[DuplicateGroup] = []
        offset = 0
        while True:
            page = index.duplicate_groups(DuplicateQuery(limit=KEEP_ONE_PAGE_SIZE, offset=offset))
            groups.extend(page)
            if len(page) < KEEP_ONE_PAGE_SIZE:
                return groups
            offset += KEEP_ONE_PAGE_SIZE

    def output_groups(self, groups: List[DuplicateGroup], first_number: int = 1) -> None:
        """Output duplicate groups as plain text with the file ids used by 'quarantine'."""
        if not groups:
            print("No duplicate groups found.")
            return

        total_files = sum(len(g.files) for g in groups)
        print(f"Found {len(groups)} duplicate groups ({total_files} files)")
        for idx, group in enumerate(groups, first_number):
            size_str = ConvertUtils.bytes_to_human(group.size)
            print(f"\n📁 Group {idx} | Size: {size_str} | Files: {len(group.files)}")
            for file in group.files:
                print(f"   [{file.id}] {file.path}")

    @staticmethod
    def print_stats(index: FileIndex) -> None:
        stats = index.stats()
        print("📊 Duplicate Statistics:")
        print(f"Duplicate files:   {stats.duplicate_files}")
        print(f"Duplicate sets:    {stats.duplicate_sets}")
        print(f"Duplicate folders: {stats.duplicate_folder_groups}")
        print(f"Wasted space:      {ConvertUtils.bytes_to_human(stats.wasted_bytes)}")

    def report_moves(self, result: MoveResult, verb: str) -> None:
        total = len(result.succeeded) + len(result.failed)
        if result.failed:
            print(f"\n⚠️  Partial success: {len(result.succeeded)}/{total} files {verb}.")
            for path, error in result.failed[:5]:  # Show first 5 errors
                print(f"  • {os.path.basename(path) or path}: {error}")
            if len(result.failed) > 5:
                print(f"  ...and {len(result.failed) - 5} more files")
        elif not self.quiet:
            print(f"✅ Successfully {verb}: {len(result.succeeded)} files.")

    def warning(self, message: str) -> None:
        """Print a warning message to stderr."""
        if not self.quiet:
            print(f"⚠️  {message}", file=sys.stderr)

    @staticmethod
    def error_exit(message: str, code: int = 1) -> NoReturn:
        """Print error and exit."""
        print(f"❌ Error: {message}", file=sys.stderr)
        sys.exit(code)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Main entry point with conditional output behavior."""
        args = self.parse_args(argv)
        self.verbose = args.verbose
        self.quiet = args.quiet
        self.configure_logging()
        self.validate_args(args)

        handler = getattr(self, f"cmd_{args.command}")
        with FileIndex(str(Path(args.db).expanduser())) as index:
            try:
                handler(args, index)
            except DuplidexError as e:
                self.error_exit(str(e))

        elapsed = time.time() - self.start_time
        if self.verbose:
            print(f"\n✅ Completed in {elapsed:.2f} seconds")


def main(argv: Optional[List[str]] = None) -> None:
    """Application entry point."""
    app = CLIApplication()
    try:
        app.run(argv)
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user (Ctrl+C)")
        sys.exit(130)
    except Exception as e:
        if os.environ.get("DEBUG"):
            raise
        print(f"❌ Unexpected error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
