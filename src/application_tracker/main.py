import argparse
import logging
import sys

from .settings import load_settings, scan_config, load_state, save_state, clear_state
from .email_client import GmailMailbox
from .sheets_writer import open_store
from .reconciler import Reconciler, ScanSummary
from .scheduler import DEFAULT_HOUR, build_scheduler, enable_auto_scan, disable_auto_scan
from .logging_config import setup_logging

logger = logging.getLogger(__name__)

RESET_CONFIRMATION = "RESET"


def _store(cfg):
    return open_store(cfg.sheets["spreadsheet_name"], cfg.sheets.get("worksheet_name", "Applications"))


def run_scan(dry_run: bool = False) -> ScanSummary:
    cfg = load_settings()
    config = scan_config(cfg, dry_run=dry_run)
    mailbox = GmailMailbox(max_results=config.max_threads)
    reconciler = Reconciler(config, mailbox, _store(cfg))
    return reconciler.run()


def scheduled_scan(scheduler=None) -> None:
    """Timer callback: scan unless auto-scan was switched off since startup."""
    state = load_state()
    if not state.get("auto_scan", {}).get("enabled"):
        logger.info("Auto-scan was disabled; removing the daily timer")
        if scheduler is not None:
            disable_auto_scan(scheduler)
            scheduler.shutdown(wait=False)
        return
    try:
        summary = run_scan()
    except Exception:
        # The next trigger retries the whole scan
        logger.exception("Scheduled scan failed")
        return
    logger.info("Scheduled scan finished: %s", summary)


def set_auto_scan(enabled: bool, hour=None) -> dict:
    state = load_state()
    auto = state.setdefault("auto_scan", {})
    auto["enabled"] = enabled
    if hour is not None:
        auto["hour"] = hour
    save_state(state)
    return state


def serve() -> None:
    cfg = load_settings()
    config = scan_config(cfg)
    auto = load_state().get("auto_scan", {})
    if not auto.get("enabled"):
        print("Auto-scan is disabled. Run `enable-auto-scan` first.")
        return
    hour = auto.get("hour")
    hour = int(hour if hour is not None else cfg.schedule.get("hour", DEFAULT_HOUR))
    scheduler = build_scheduler(config.tz)
    enable_auto_scan(scheduler, lambda: scheduled_scan(scheduler), hour=hour, timezone=config.tz)
    print(f"Waiting for the daily scan at {hour:02d}:00 {config.timezone} (Ctrl+C to stop)")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown(wait=False)


def recolor() -> int:
    cfg = load_settings()
    return _store(cfg).recolor_all()


def full_reset() -> None:
    """Delete every tracked row and the auto-scan state. Irreversible."""
    cfg = load_settings()
    _store(cfg).clear()
    clear_state()
    logger.warning("All tracked applications were deleted")


def _confirm_reset() -> bool:
    answer = input(
        f"This deletes every tracked application and disables auto-scan.\n"
        f"Type {RESET_CONFIRMATION} to continue: "
    )
    return answer.strip() == RESET_CONFIRMATION


def _app_settings() -> dict:
    # toggling auto-scan works without a config file; logging then uses defaults
    try:
        return load_settings().app
    except FileNotFoundError:
        return {}


def main(argv=None):
    parser = argparse.ArgumentParser(description="Job application tracker (Gmail -> Google Sheets)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR (default: app.log_level or INFO)")
    parser.add_argument("--log-file", default=None, help="Also log to this file, rotated daily")
    sub = parser.add_subparsers(dest="command", required=True)

    scan_p = sub.add_parser("scan", help="Find new applications and update existing ones")
    scan_p.add_argument("--dry-run", action="store_true", help="Log changes without writing to the sheet")

    enable_p = sub.add_parser("enable-auto-scan", help="Scan once a day while `serve` is running")
    enable_p.add_argument("--hour", type=int, default=None, help="Hour of day (0-23) for the daily scan")
    sub.add_parser("disable-auto-scan", help="Stop the daily scan")
    sub.add_parser("serve", help="Run the daily scan scheduler in the foreground")
    sub.add_parser("recolor", help="Reapply status colours to every row")

    reset_p = sub.add_parser("reset", help="Delete all tracked data and disable auto-scan")
    reset_p.add_argument("--yes", action="store_true", help="Skip the interactive confirmation")

    args = parser.parse_args(argv)
    try:
        setup_logging(args.log_level, args.log_file, _app_settings())
    except ValueError as e:
        parser.error(str(e))

    try:
        if args.command == "scan":
            summary = run_scan(dry_run=args.dry_run)
            print(f"Scan complete: {summary}")
        elif args.command == "enable-auto-scan":
            if args.hour is not None and not 0 <= args.hour <= 23:
                parser.error("--hour must be between 0 and 23")
            hour = args.hour if args.hour is not None else load_settings().schedule.get("hour", DEFAULT_HOUR)
            set_auto_scan(True, hour)
            print(f"Auto-scan enabled daily at {int(hour):02d}:00")
        elif args.command == "disable-auto-scan":
            set_auto_scan(False)
            print("Auto-scan disabled")
        elif args.command == "serve":
            serve()
        elif args.command == "recolor":
            print(f"Recolored {recolor()} rows")
        elif args.command == "reset":
            if not (args.yes or _confirm_reset()):
                print("Reset cancelled")
                return 1
            full_reset()
            print("All tracked data deleted")
    except Exception as e:
        logger.error("%s failed: %s", args.command, e, exc_info=True)
        print(f"{args.command} failed: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
