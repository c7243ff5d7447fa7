from __future__ import annotations

import argparse
import logging
import os
from concurrent.futures import ThreadPoolExecutor

from pr_merge_bot.adapters.code_hosts.github_api import GitHubCodeHostAdapter
from pr_merge_bot.adapters.filesystem.local_workspaces import LocalWorkspaceManager
from pr_merge_bot.adapters.git_client.shell_git_client import ShellGitClientAdapter
from pr_merge_bot.adapters.permissions.team_permissions import TeamPermissionResolver
from pr_merge_bot.adapters.webhook.dispatcher import WebhookDispatcher
from pr_merge_bot.adapters.webhook.http_server import WebhookHTTPServer
from pr_merge_bot.application.use_cases.merge_orchestrator import MergeOrchestrator
from pr_merge_bot.application.use_cases.status_poller import StatusPoller
from pr_merge_bot.cli.config import AppConfig, load_config
from pr_merge_bot.logging_utils import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pr-merge-bot",
        description="Receive GitHub webhooks and squash-merge pull requests on '@bot merge' comments.",
    )

    parser.add_argument("--username", required=False, help="Bot login on GitHub. Falls back to GITHUB_USERNAME.")
    parser.add_argument(
        "--base-dir",
        required=False,
        help="Directory holding one workspace per repository. Falls back to BASE_DIR.",
    )
    parser.add_argument(
        "--listen",
        required=False,
        help="host:port to receive webhooks on. Falls back to LISTEN_ADDRESS (default 127.0.0.1:8080).",
    )
    parser.add_argument(
        "--allow",
        action="append",
        metavar="LOGIN",
        help="Login that may always issue commands (repeatable). Falls back to ALLOWED_USERS.",
    )
    parser.add_argument(
        "--allow-team",
        action="append",
        metavar="ORG/TEAM",
        help="Team whose members may issue commands (repeatable). Falls back to ALLOWED_TEAMS.",
    )

    return parser


def main() -> int:
    configure_logging(os.environ.get("LOG_LEVEL", "INFO"))
    logger = logging.getLogger(__name__)

    parser = build_parser()
    args = parser.parse_args()
    try:
        config = load_config(args=args, env=os.environ)
    except ValueError as error:
        parser.error(str(error))

    logger.info(
        "cli configuration resolved",
        extra={
            "event": "cli.config.resolved",
            "username": config.username,
            "base_dir": str(config.base_dir),
            "listen": f"{config.listen_host}:{config.listen_port}",
            "allowed_users": list(config.allowed_users),
            "allowed_teams": list(config.allowed_teams),
            "webhook_secret_configured": config.webhook_secret is not None,
            "max_wait_seconds": config.max_wait_seconds,
        },
    )

    event_executor = ThreadPoolExecutor(thread_name_prefix="webhook")
    orchestrator = build_orchestrator(config)
    server = WebhookHTTPServer(
        (config.listen_host, config.listen_port),
        dispatcher=WebhookDispatcher(orchestrator, bot_login=config.username),
        executor=event_executor,
        secret=config.webhook_secret,
    )

    logger.info(
        "listening for webhooks",
        extra={"event": "cli.server.start", "address": f"{server.server_address[0]}:{server.server_address[1]}"},
    )
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("shutting down", extra={"event": "cli.server.stop"})
    finally:
        server.server_close()
        event_executor.shutdown(wait=True)
        orchestrator.shutdown(wait=False)
    return 0


def build_orchestrator(config: AppConfig) -> MergeOrchestrator:
    code_host = GitHubCodeHostAdapter(
        api_base_url=config.github_api_base_url,
        token=config.token,
        username=config.username,
        timeout_seconds=config.github_timeout_seconds,
    )
    git_client = ShellGitClientAdapter(clone_url_template=config.clone_url_template)

    return MergeOrchestrator(
        code_host=code_host,
        git_client=git_client,
        workspaces=LocalWorkspaceManager(config.base_dir, git_client),
        permissions=TeamPermissionResolver(
            code_host,
            always_allowed=config.allowed_users,
            allowed_teams=config.allowed_teams,
        ),
        poller=StatusPoller(
            max_wait_seconds=config.max_wait_seconds,
            max_interval_seconds=config.max_poll_interval_seconds,
        ),
        executor=ThreadPoolExecutor(max_workers=config.poll_workers, thread_name_prefix="merge-poller"),
        review_context=config.review_context,
    )
