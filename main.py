# main.py
import argparse
import logging
import os
import sys
from pathlib import Path

import yaml

from config import BACKENDS, CONFIG_PATH, load_settings
from errors import ReaddressError
from lockfile import RunLock
from logger import LOG_FILE, log, set_console_level
from prompts import ConsolePrompter


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pve-readdress",
        description="Change the management IP of a Proxmox/Debian/Ubuntu host "
                    "and gracefully shut down its running VMs.",
    )
    p.add_argument("--config", type=Path, default=None,
                   help=f"Settings file (default: {CONFIG_PATH})")
    p.add_argument("--backend", choices=BACKENDS, default=None,
                   help="Network configuration backend (default: auto-detect)")
    p.add_argument("--vm-timeout", type=int, default=None,
                   help="Seconds to wait for each VM before forcing a stop")
    p.add_argument("--poll-interval", type=int, default=None,
                   help="Seconds between VM status polls")
    p.add_argument("--backup-root", type=Path, default=None,
                   help="Directory that receives network_backup_* directories")
    p.add_argument("--no-checks", action="store_true",
                   help="Skip the post-apply reachability checks")
    p.add_argument("--plain", action="store_true",
                   help="Line-based prompts instead of the full-screen interface")

    restore = p.add_mutually_exclusive_group()
    restore.add_argument("--restore-latest", action="store_true",
                         help="Restore the most recent backup and reload networking")
    restore.add_argument("--restore", type=Path, metavar="DIR", default=None,
                         help="Restore the given backup directory and reload networking")
    return p


def run(args: argparse.Namespace) -> int:
    try:
        settings = load_settings(
            args.config,
            backend=args.backend,
            vm_timeout=args.vm_timeout,
            poll_interval=args.poll_interval,
            backup_root=args.backup_root,
            run_checks=False if args.no_checks else None,
        )
    except (OSError, ValueError, yaml.YAMLError) as e:
        log.error("Invalid settings: %s", e)
        return 1

    tui = not (args.plain or args.restore_latest or args.restore)
    # Textual owns the terminal; records reach the log panel instead.
    set_console_level(logging.CRITICAL + 1 if tui else logging.INFO)

    try:
        with RunLock(settings.lock_file):
            if args.restore_latest or args.restore:
                from workflow import restore_backup
                return restore_backup(settings, args.restore)
            if args.plain:
                from widgets.header import BANNER
                from workflow import Workflow
                print(BANNER)
                return Workflow(ConsolePrompter(), settings).run()

            from app import ReaddressApp
            app = ReaddressApp(settings)
            app.run()
            return app.return_code or 0
    except ReaddressError as e:
        set_console_level(logging.INFO)
        log.error("%s", e)
        return e.exit_code


def main(argv=None) -> None:
    args = build_parser().parse_args(argv)
    if os.geteuid() != 0:
        print("ERROR: This tool must be run as root or with sudo.", file=sys.stderr)
        sys.exit(1)
    try:
        code = run(args)
    except KeyboardInterrupt:
        print(f"\nInterrupted. See {LOG_FILE} for details.", file=sys.stderr)
        code = 130
    sys.exit(code)


if __name__ == "__main__":
    main()
