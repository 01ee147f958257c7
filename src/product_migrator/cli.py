"""
Command line runner
Loads a migration job from JSON, runs it and prints each progress event as a JSON line
"""
import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from .auth.credentials import KeychainCredentialSource
from .core.config import MigratorConfig
from .core.models import MigrationJob, ProgressEvent, Stage
from .main import MigrationEngine
from .utils.logger_config import setup_logger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='product_migrator',
        description='Migrate a digital product listing into a storefront account',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run a job file
  python -m product_migrator job.json

  # Watch the browser and take the password from the OS keychain
  python -m product_migrator job.json --headed --password-from-keychain

  # Validate the job without launching a browser
  python -m product_migrator job.json --dry-run
        """
    )
    parser.add_argument('job_file', nargs='?', help='Path to JSON file containing the migration job')
    parser.add_argument('--json', type=str, help='Migration job as a JSON string')
    parser.add_argument('--headless', dest='headless', action='store_true', default=None,
                        help='Run the browser without a window')
    parser.add_argument('--headed', dest='headless', action='store_false',
                        help='Show the browser window')
    parser.add_argument('--password-from-keychain', action='store_true',
                        help='Read the destination password from the OS keychain')
    parser.add_argument('--dry-run', action='store_true',
                        help='Validate the job and exit without running it')
    return parser


def load_job_payload(args: argparse.Namespace) -> Dict[str, Any]:
    if args.json:
        return json.loads(args.json)
    if args.job_file:
        return json.loads(Path(args.job_file).read_text(encoding='utf-8'))
    raise ValueError("Provide a job file or --json")


def inject_keychain_password(payload: Dict[str, Any], source: Optional[KeychainCredentialSource] = None):
    """Fill credentials.destination.password from the keychain"""
    source = source or KeychainCredentialSource()
    platform = payload.get('targetPlatform') or payload.get('target_platform') or ''
    destination = payload.setdefault('credentials', {}).setdefault('destination', {})
    username = destination.get('username', '')
    destination['password'] = source.credentials_for(platform, username).password.get_secret_value()


def print_event(event: ProgressEvent):
    print(json.dumps(event.to_json_dict()), flush=True)


async def run_job(job: MigrationJob, settings: MigratorConfig) -> ProgressEvent:
    engine = MigrationEngine(settings)
    return await engine.run(job, on_event=print_event)


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = MigratorConfig.from_env().with_overrides(headless=args.headless)
    setup_logger(level=settings.log_level)

    try:
        payload = load_job_payload(args)
        if args.password_from_keychain:
            inject_keychain_password(payload)
        job = MigrationJob.model_validate(payload)
    except (OSError, ValueError, LookupError, ValidationError) as e:
        logger.error(f"❌ Invalid job: {e}")
        return 2

    if args.dry_run:
        logger.info(f"🔍 DRY-RUN: job {job.job_id} is valid ({len(job.products())} product(s))")
        return 0

    terminal = asyncio.run(run_job(job, settings))
    return 0 if terminal is not None and terminal.stage is Stage.COMPLETE else 1
