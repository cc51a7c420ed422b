"""
Command-line interface for the watch uploader.
"""
import argparse
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from keyring.errors import KeyringError

from . import __version__
from .auth import AuthError, parse_credential_blob
from .config import (
    DEFAULT_CREDENTIAL_ACCOUNT,
    DEFAULT_CREDENTIAL_SERVICE,
    ConfigError,
    build_config,
    load_config,
)
from .coordinator import UploadCoordinator
from .credentials import KeyringCredentialStore
from .monitor import WatcherError

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer", "watchdog")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application.

    Args:
        verbose: Whether to enable debug logging
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.INFO if verbose else logging.WARNING)


def cli_overrides(args: argparse.Namespace) -> dict:
    """Map parsed ``watch`` arguments onto configuration keys."""
    return {
        'watch_dir': args.source,
        'bucket': args.bucket,
        'expected_bucket_owner': args.expected_bucket_owner,
        'role_arn': args.role_arn,
        'region': args.region,
        'endpoint_url': args.endpoint_url,
        'debounce_seconds': args.debounce,
        'stability_seconds': args.stability,
        'poll_interval': args.poll_interval,
        'stability_timeout': args.stability_timeout,
        'max_concurrent_uploads': args.max_concurrent,
        'log_dir': args.log_dir,
        'verbose': True if args.verbose else None,
        'notify_failures': False if args.no_failure_notifications else None,
    }


def handle_watch(args: argparse.Namespace) -> None:
    """Handle the watch command.

    Args:
        args: Command line arguments
    """
    try:
        config = build_config(load_config(args.config), cli_overrides(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if config.verbose and not args.verbose:
        setup_logging(True)

    coordinator = UploadCoordinator(config)
    stop_event = threading.Event()

    def request_stop(signum, frame):
        logger.info("Received shutdown signal, exiting gracefully")
        stop_event.set()

    signal.signal(signal.SIGINT, request_stop)
    signal.signal(signal.SIGTERM, request_stop)

    try:
        coordinator.run(stop_event)
    except WatcherError as e:
        logger.error(f"Watcher failed: {e}")
        sys.exit(1)


def handle_set_credentials(args: argparse.Namespace) -> None:
    """Handle the set-credentials command.

    Args:
        args: Command line arguments
    """
    try:
        values = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    store = KeyringCredentialStore(
        values.get('credential_service', DEFAULT_CREDENTIAL_SERVICE),
        values.get('credential_account', DEFAULT_CREDENTIAL_ACCOUNT)
    )

    if args.clear:
        if store.delete():
            logger.info("Removed stored credentials")
        else:
            logger.info("No stored credentials to remove")
        return

    if not args.key_file:
        logger.error("A key file is required unless --clear is given")
        sys.exit(1)

    try:
        blob = Path(args.key_file).read_bytes()
        parse_credential_blob(blob)
        store.put(blob)
    except (OSError, AuthError, KeyringError) as e:
        logger.error(f"Error storing credentials from '{args.key_file}': {e}")
        sys.exit(1)


def handle_version(args: argparse.Namespace) -> None:
    print(f"watch-uploader {__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Upload files dropped into a folder to S3, then delete them locally"
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose logging")
    parser.add_argument('-c', '--config', type=Path,
                        help="Path to JSON config file")

    subparsers = parser.add_subparsers(dest='command', required=True)

    # Watch command
    watch_parser = subparsers.add_parser('watch',
                                         help="Watch a folder and upload new files")
    watch_parser.add_argument('-s', '--source', type=str,
                              help="Folder to monitor for files")
    watch_parser.add_argument('-b', '--bucket', type=str,
                              help="Destination S3 bucket")
    watch_parser.add_argument('--expected-bucket-owner', type=str,
                              help="Account id that must own the bucket")
    watch_parser.add_argument('--role-arn', type=str,
                              help="Role to assume when no stored credentials exist")
    watch_parser.add_argument('--region', type=str,
                              help="AWS region")
    watch_parser.add_argument('--endpoint-url', type=str,
                              help="Custom S3-compatible endpoint")
    watch_parser.add_argument('--debounce', type=float,
                              help="Seconds of quiet before a file is processed")
    watch_parser.add_argument('--stability', type=float,
                              help="Seconds a file size must hold still")
    watch_parser.add_argument('--poll-interval', type=float,
                              help="Seconds between file size checks")
    watch_parser.add_argument('--stability-timeout', type=float,
                              help="Give up on files that never settle after this many seconds")
    watch_parser.add_argument('--max-concurrent', type=int,
                              help="Maximum simultaneous uploads")
    watch_parser.add_argument('--log-dir', type=str,
                              help="Directory for the upload audit log")
    watch_parser.add_argument('--no-failure-notifications', action='store_true',
                              help="Only notify about successful uploads")
    watch_parser.set_defaults(handler=handle_watch)

    # Set-credentials command
    creds_parser = subparsers.add_parser('set-credentials',
                                         help="Store an AWS credentials JSON file in the keyring")
    creds_parser.add_argument('key_file', type=str, nargs='?',
                              help="JSON file with AccessKeyId and SecretAccessKey")
    creds_parser.add_argument('--clear', action='store_true',
                              help="Remove the stored credentials instead")
    creds_parser.set_defaults(handler=handle_set_credentials)

    # Version command
    version_parser = subparsers.add_parser('version',
                                           help="Show version information")
    version_parser.set_defaults(handler=handle_version)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    args.handler(args)


if __name__ == '__main__':
    main()
