"""
Command line entry point.

Usage:
    python -m social_context generate [--dry-run]
    python -m social_context discover USER_ID
    python -m social_context info

Configuration is read from the environment (see ``social_context.config``).
"""

import argparse
import logging
import sys

from .config import ClusteringConfig
from .errors import SocialContextError
from .firestore_store import FirestoreClusterStore
from .manager import ClusteringOrchestrator

logger = logging.getLogger("social_context")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="social_context",
        description="Cluster users by profile similarity and rank content per cluster",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser("generate", help="Cluster users and assign content")
    generate.add_argument(
        "--dry-run",
        action="store_true",
        help="Cluster without writing to Firestore",
    )

    discover = subparsers.add_parser("discover", help="Find the closest cluster to a user")
    discover.add_argument("user_id", type=int, help="Target user id")

    subparsers.add_parser("info", help="Describe the stored clusters")

    return parser


def main(argv=None) -> int:
    """Main entry point for social context generation."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    args = build_parser().parse_args(argv)

    try:
        config = ClusteringConfig.from_env()
        store = FirestoreClusterStore(project_id=config.project_id)
        manager = ClusteringOrchestrator(
            store, config, dry_run=getattr(args, "dry_run", False)
        )

        if args.command == "generate":
            manager.generate_social_context()
        elif args.command == "discover":
            print(manager.discover_user_cluster(args.user_id))
        elif args.command == "info":
            print(manager.clusters_information())
    except SocialContextError as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
