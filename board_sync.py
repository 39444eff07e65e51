#!/usr/bin/env python3
"""Porting board sync for microsoft/TypeScript -> microsoft/typescript-go.

Commands:

- sync: fetch merged PRs, classify them and create/update board cards
- file-issues: open follow-up issues for un-ported cards of the oldest release
- auth: store or clear the GitHub token in the user config
"""

import argparse
import logging
import sys
from typing import List, Optional

from application.followup_filer import FollowUpFiler
from application.release_attributor import ReleaseAttributor, ReleaseMarker
from application.sync_service import BoardSyncService
from config import ConfigError, RunOptions, load_run_options, require_token, set_user_token
from core import Classifier, ReleaseLine
from infrastructure.change_cache import ChangeCache
from infrastructure.change_fetcher import ChangeFetcher
from infrastructure.github import (
    BoardTarget,
    FollowUpTarget,
    GitHubBoard,
    GraphQLClient,
    GraphQLClientError,
    RateLimiter,
    RepositoryClient,
    SourceRepository,
)

logger = logging.getLogger("port_tracker.sync")

SOURCE = SourceRepository(owner="microsoft", name="TypeScript", main_branch="main")

BOARD = BoardTarget(
    org="microsoft",
    project_number=1588,
    project_id="PVT_kwDOAF3p4s4Av_GA",
    owner_field_id="PVTF_lADOAF3p4s4Av_GAzgmgoeA",
    status_field_id="PVTSSF_lADOAF3p4s4Av_GAzgmU7n8",
    release_field_id="PVTSSF_lADOAF3p4s4Av_GAzgve4ow",
)

FOLLOWUPS = FollowUpTarget(
    slug="microsoft/typescript-go",
    repository_id="R_kgDOM0QWIw",
    label="Porting PR",
    label_id="LA_kwDOM0QWI88AAAACCeGIEQ",
)

# oldest to newest
RELEASE_MARKERS = (ReleaseMarker(tag="v5.8.3", release=ReleaseLine.V5_8),)

KNOWN_USER_IDS = {"copilot": "BOT_kgDOC9w8XQ"}

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_client(token: str) -> GraphQLClient:
    return GraphQLClient(token_provider=lambda: token, rate_limiter=RateLimiter())


def build_repository(client: GraphQLClient) -> RepositoryClient:
    return RepositoryClient(client, SOURCE, followups=FOLLOWUPS, known_user_ids=KNOWN_USER_IDS)


def build_sync_service(client: GraphQLClient, options: RunOptions) -> BoardSyncService:
    repository = build_repository(client)
    return BoardSyncService(
        cache=ChangeCache(options.cache_path),
        fetcher=ChangeFetcher(repository, main_branch=SOURCE.main_branch),
        board=GitHubBoard(client, BOARD),
        attributor=ReleaseAttributor(repository, RELEASE_MARKERS),
        classifier=Classifier(),
        dry_run=options.dry_run,
    )


def build_followup_filer(client: GraphQLClient, options: RunOptions) -> FollowUpFiler:
    return FollowUpFiler(
        build_repository(client),
        release=ReleaseLine.oldest(),
        limit=options.limit,
        dry_run=options.dry_run,
    )


def cmd_sync(args: argparse.Namespace, options: RunOptions, client: GraphQLClient) -> int:
    service = build_sync_service(client, options)
    try:
        service.run()
    except GraphQLClientError as exc:
        logger.error("Sync aborted, cache left untouched: %s", exc)
        return EXIT_FAILED
    return EXIT_OK


def cmd_file_issues(args: argparse.Namespace, options: RunOptions, client: GraphQLClient) -> int:
    filer = build_followup_filer(client, options)
    try:
        entries = GitHubBoard(client, BOARD).fetch_entries()
    except GraphQLClientError as exc:
        logger.error("Could not read the board: %s", exc)
        return EXIT_FAILED
    filer.run(entries)
    return EXIT_OK


def cmd_auth(args: argparse.Namespace) -> int:
    if args.unset:
        set_user_token("")
        logger.info("GitHub token cleared")
        return EXIT_OK
    if not args.token:
        logger.error("Pass --token or --unset")
        return EXIT_CONFIG
    set_user_token(args.token)
    logger.info("GitHub token saved")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="port-tracker", description="Keep the porting board in sync")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)
    for name, help_text in (("sync", "sync merged PRs onto the board"), ("file-issues", "file follow-up issues")):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--dry-run", action="store_true", default=None, help="plan without writing")
        if name == "file-issues":
            cmd.add_argument("--limit", type=int, default=None, help="max issues per run")
    auth = sub.add_parser("auth", help="store the GitHub token")
    auth.add_argument("--token")
    auth.add_argument("--unset", action="store_true")
    return parser


def _options_from(args: argparse.Namespace) -> RunOptions:
    options = load_run_options()
    dry_run = options.dry_run if getattr(args, "dry_run", None) is None else args.dry_run
    limit = options.limit if getattr(args, "limit", None) is None else args.limit
    return RunOptions(dry_run=dry_run, limit=limit, cache_path=options.cache_path)


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if args.command == "auth":
        return cmd_auth(args)
    try:
        options = _options_from(args)
        token = require_token()
    except ConfigError as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG
    client = build_client(token)
    if options.dry_run:
        logger.info("DRY RUN: no board or issue mutations will be made")
    if args.command == "sync":
        return cmd_sync(args, options, client)
    return cmd_file_issues(args, options, client)


if __name__ == "__main__":
    sys.exit(main())
