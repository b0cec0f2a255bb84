"""
CLI - command line interface
"""

import argparse
import sys
import logging
from typing import List, Optional, Tuple

from .dockerdaemon import Context, DockerClient, DockerException
from .settings_manager import SettingsManager

logger = logging.getLogger(__name__)


def parse_image(image: str) -> Tuple[str, str]:
    """Split repository[:tag], defaulting the tag to latest"""
    repository, sep, tag = image.rpartition(':')
    if not sep or '/' in tag:
        return image, 'latest'
    return repository, tag


class AgentCLI:
    """Agent CLI interface"""

    def __init__(self, settings: SettingsManager):
        """Initialize CLI"""
        self.settings = settings
        self.client = DockerClient(
            settings.get('docker_host'),
            scheme=settings.get('docker_scheme'),
            version=settings.get('docker_version') or '',
            registry=settings.get('registry'),
        )

    def pull(self, image: str):
        """Pull image through the daemon from the configured registry"""
        repository, tag = parse_image(image)
        timeout = self.settings.get('pull_timeout')
        ctx = Context(timeout=float(timeout) if timeout else None)

        from_image = self.client.image_pull(ctx, repository, tag)
        logger.info(f"✓ Pulled {from_image}:{tag}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='kraken-agent',
        description='Image distribution agent - pull images through a Docker daemon',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Usage examples:
  %(prog)s pull library/redis:7
  %(prog)s pull app/web:1.2 --host tcp://127.0.0.1:2375 --api-version 1.24
  %(prog)s pull app/web --registry registry.local:5000 --timeout 600
"""
    )

    parser.add_argument('action', choices=['pull'], help='Action')
    parser.add_argument('image', help='Image as repository[:tag]')

    # Daemon parameters
    parser.add_argument('--host', help='Daemon address (tcp://host:port or unix:///path)')
    parser.add_argument('--scheme', choices=['http', 'https'], help='URL scheme presented to the daemon')
    parser.add_argument('--api-version', help='Docker API version, empty for unversioned')
    parser.add_argument('--registry', help='Registry host prefixed to repositories')
    parser.add_argument('--timeout', type=float, help='Pull timeout in seconds')

    # Agent parameters
    parser.add_argument('--settings', help='Path to JSON settings file')
    parser.add_argument('--log-level', help='Logging level (default: INFO)')

    return parser


def run_cli(argv: Optional[List[str]] = None):
    """Start CLI application"""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = SettingsManager(args.settings)
    settings.update({
        'docker_host': args.host,
        'docker_scheme': args.scheme,
        'docker_version': args.api_version,
        'registry': args.registry,
        'pull_timeout': args.timeout,
        'log_level': args.log_level,
    })

    logging.basicConfig(
        level=str(settings.get('log_level', 'INFO')).upper(),
        format='%(message)s'
    )

    try:
        cli = AgentCLI(settings)
        if args.action == 'pull':
            cli.pull(args.image)

    except KeyboardInterrupt:
        logger.info("\n\nInterrupted by user")
        sys.exit(130)
    except DockerException as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    run_cli()
