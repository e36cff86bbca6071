"""Command-line interface for the tixcraft ticket watcher."""
import argparse
import asyncio
import logging
import sys
from typing import Dict, List, Optional

from tixcraft_watch import __version__
from tixcraft_watch.app import CheckScheduler
from tixcraft_watch.browser import BrowserSessionManager
from tixcraft_watch.config import load_config
from tixcraft_watch.exceptions import BrowserSessionError, ConfigError
from tixcraft_watch.models import AppConfig, AvailabilityPolicy, MarkerStrategy

# CLI option -> environment setting it overrides
OVERRIDES = {
    'target_url': 'TARGET_URL',
    'interval': 'CHECK_INTERVAL_SECONDS',
    'probe_timeout': 'PROBE_TIMEOUT_SECONDS',
    'on_available': 'ON_AVAILABLE',
    'strategy': 'MARKER_STRATEGY',
    'selector': 'MARKER_SELECTOR',
    'hold_seconds': 'AUTOFILL_HOLD_SECONDS',
    'chrome_path': 'CHROME_PATH',
    'log_level': 'LOG_LEVEL',
}


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: List of command line arguments. If None, uses sys.argv[1:].

    Returns:
        Parsed arguments.
    """
    parser = argparse.ArgumentParser(
        description="Watch a tixcraft ticket page and act as soon as tickets become available.",
        epilog="Options override the matching environment variables (see .env).",
    )

    target_group = parser.add_argument_group('Target')
    target_group.add_argument(
        '--target-url',
        type=str,
        help='URL of the ticket area selection page (TARGET_URL)',
    )
    target_group.add_argument(
        '--interval',
        type=float,
        help='seconds between checks (CHECK_INTERVAL_SECONDS, default 60)',
    )
    target_group.add_argument(
        '--probe-timeout',
        type=float,
        help='deadline in seconds for one check (PROBE_TIMEOUT_SECONDS, default 30)',
    )

    marker_group = parser.add_argument_group('Availability Marker')
    marker_group.add_argument(
        '--strategy',
        choices=[s.value for s in MarkerStrategy],
        help='marker strategy (MARKER_STRATEGY, default structural)',
    )
    marker_group.add_argument(
        '--selector',
        type=str,
        help='marker CSS selector (MARKER_SELECTOR, default #group_0)',
    )
    marker_group.add_argument(
        '--keyword',
        type=str,
        action='append',
        help='availability keyword, can be given multiple times (AVAILABILITY_KEYWORDS)',
    )

    action_group = parser.add_argument_group('On Detection')
    action_group.add_argument(
        '--on-available',
        choices=[p.value for p in AvailabilityPolicy],
        help='what to do when tickets are found (ON_AVAILABLE)',
    )
    action_group.add_argument(
        '--hold-seconds',
        type=float,
        help='seconds to keep the auto-fill browser open (AUTOFILL_HOLD_SECONDS, default 180)',
    )
    action_group.add_argument(
        '--chrome-path',
        type=str,
        help='Chrome executable for auto-fill (CHROME_PATH)',
    )

    log_group = parser.add_argument_group('Logging')
    log_group.add_argument(
        '--log-level',
        type=str,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level (LOG_LEVEL, default INFO)',
    )
    log_group.add_argument(
        '--verbose', '-v',
        action='store_const',
        const='DEBUG',
        dest='log_level',
        help='Enable verbose output (same as --log-level DEBUG)',
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
        help='show version and exit',
    )

    if args is None:
        args = sys.argv[1:]
    return parser.parse_args(args)


def build_overrides(args: argparse.Namespace) -> Dict[str, object]:
    """Collect the settings explicitly given as CLI options."""
    overrides = {
        name: getattr(args, option)
        for option, name in OVERRIDES.items()
        if getattr(args, option, None) is not None
    }
    if getattr(args, 'keyword', None):
        overrides['AVAILABILITY_KEYWORDS'] = ','.join(args.keyword)
    return overrides


def configure_logging(level: str = 'INFO') -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as a string (e.g., 'INFO', 'DEBUG').
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
        ]
    )

    # Set log level for Playwright to WARNING to reduce noise
    logging.getLogger('playwright').setLevel(logging.WARNING)


def print_config(config: AppConfig) -> None:
    """Print the current configuration."""
    print("\n=== tixcraft Ticket Watcher ===")
    print(f"\nTarget URL: {config.target_url}")
    print(f"Check Interval: {config.check_interval:g} seconds")

    print("\nAvailability Marker:")
    print(f"  Strategy: {config.detector.strategy.value}")
    print(f"  Selector: {config.detector.selector}")
    if config.detector.strategy == MarkerStrategy.STRUCTURAL:
        print(f"  Keywords: {', '.join(config.detector.keywords)}")
    print(f"  Probe Timeout: {config.detector.probe_timeout:g} seconds")
    print(f"  Persistent Session: {'enabled' if config.detector.persistent_session else 'disabled'}")

    print(f"\nOn Detection: {config.policy.value}")
    if config.policy == AvailabilityPolicy.AUTOFILL:
        print(f"  Hold Window: {config.autofill.hold_seconds:g} seconds")
        print(f"  Chrome: {config.autofill.chrome_path or 'auto-detect'}")
    else:
        print(f"  E-mail: {config.email.sender} -> {config.email.recipient}")
        print(f"  SMTP: {config.email.smtp_host}:{config.email.smtp_port}")

    print(f"\nLog Level: {config.log_level}")
    print("=" * 31 + "\n")


async def async_main(argv: Optional[List[str]] = None) -> int:
    """Async entry point for the CLI."""
    args = parse_args(argv)

    try:
        # CLI options win over the environment and .env
        config = load_config('.env', **build_overrides(args))
    except ConfigError as e:
        configure_logging(level=args.log_level or 'INFO')
        logging.getLogger(__name__).error(f"❌ Invalid configuration: {e}")
        return 1

    configure_logging(level=config.log_level)
    logger = logging.getLogger(__name__)
    print_config(config)

    sessions = BrowserSessionManager(config.browser)
    try:
        await sessions.initialize()
        scheduler = CheckScheduler(config, sessions)
        await scheduler.run()
    except BrowserSessionError as e:
        logger.critical(f"❌ {e}")
        return 1
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await sessions.close()

    return 0


def main() -> int:
    """Main entry point for CLI."""
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n👋 Operation cancelled by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
