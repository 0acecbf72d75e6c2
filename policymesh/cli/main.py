"""
policymesh command-line interface.

    policymesh policy create [--at NODE] -r RESOURCE [-a ACTION] -e EXPRESSION
    policymesh policy get    [--at NODE] -r RESOURCE [-a ACTION]
    policymesh policy delete [--at NODE] -r RESOURCE [-a ACTION]
    policymesh policy list   [--at NODE] [-r RESOURCE]
    policymesh node add NAME --host HOST --port PORT [--default]
    policymesh node list
    policymesh node serve NAME [--host HOST] [--port PORT] [--store DIR]
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ..abac.types import DEFAULT_ACTION
from ..commands.policy import (
    CommandContext, create_policy, delete_policy, get_policy, list_policies
)
from ..core.config import Config
from ..errors import PolicyMeshError
from ..node.registry import NodeInfo
from ..node.server import PolicyNode
from ..node.store import FilePolicyStore, MemoryPolicyStore


logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="policymesh",
        description="Create and distribute ABAC policies to nodes"
    )
    parser.add_argument("--config", help="Configuration file (JSON or YAML)")
    parser.add_argument("--state-dir", help="Directory holding the node registry")
    parser.add_argument("--log-level", help="Logging level (default: INFO)")
    groups = parser.add_subparsers(dest="group", required=True)

    policy = groups.add_parser("policy", help="Manage policies on a node")
    policy_commands = policy.add_subparsers(dest="command", required=True)

    create = policy_commands.add_parser("create", help="Create or replace a policy")
    _add_target_arguments(create)
    create.add_argument("-e", "--expression", required=True, help="Policy expression")

    for name, help_text in (("get", "Show a policy"), ("delete", "Delete a policy")):
        command = policy_commands.add_parser(name, help=help_text)
        _add_target_arguments(command)

    listing = policy_commands.add_parser("list", help="List policies")
    listing.add_argument("--at", dest="node", metavar="NODE_NAME", help="Target node")
    listing.add_argument("-r", "--resource", help="Only list policies of this resource")

    node = groups.add_parser("node", help="Manage nodes")
    node_commands = node.add_subparsers(dest="command", required=True)

    add = node_commands.add_parser("add", help="Register a node")
    add.add_argument("name")
    add.add_argument("--host", default="127.0.0.1")
    add.add_argument("--port", type=int, required=True)
    add.add_argument("--default", action="store_true", help="Make this the default node")

    node_commands.add_parser("list", help="List registered nodes")

    serve = node_commands.add_parser("serve", help="Run a node serving a policy store")
    serve.add_argument("name")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=4000)
    serve.add_argument("--store", help="Directory for persistent policies (in-memory if omitted)")

    return parser


def _add_target_arguments(command: argparse.ArgumentParser) -> None:
    command.add_argument("--at", dest="node", metavar="NODE_NAME", help="Target node")
    command.add_argument("-r", "--resource", required=True, help="Resource name")
    command.add_argument(
        "-a", "--action", default=DEFAULT_ACTION,
        help=f"Action name (default: {DEFAULT_ACTION})"
    )


def load_config(args: argparse.Namespace) -> Config:
    """Build configuration from environment, optional file, then flags."""
    config = Config.from_file(args.config) if args.config else Config.from_env()
    if args.state_dir:
        config.state_dir = Path(args.state_dir).expanduser()
    if args.log_level:
        config.log_level = args.log_level.upper()
    config.validate()
    return config


async def run(args: argparse.Namespace, ctx: CommandContext) -> None:
    if args.group == "policy":
        await _run_policy(args, ctx)
    else:
        await _run_node(args, ctx)


async def _run_policy(args: argparse.Namespace, ctx: CommandContext) -> None:
    if args.command == "create":
        path = await create_policy(ctx, args.resource, args.action, args.expression, node=args.node)
        print(f"Policy created at {path}")
    elif args.command == "get":
        policy = await get_policy(ctx, args.resource, args.action, node=args.node)
        print(policy.expression)
    elif args.command == "delete":
        path = await delete_policy(ctx, args.resource, args.action, node=args.node)
        print(f"Policy deleted at {path}")
    else:
        policies = await list_policies(ctx, args.resource, node=args.node)
        for path, policy in sorted(policies.items(), key=lambda item: item[0].value):
            print(f"{path}\t{policy.expression}")


async def _run_node(args: argparse.Namespace, ctx: CommandContext) -> None:
    if args.command == "add":
        info = NodeInfo(name=args.name, host=args.host, port=args.port)
        await ctx.registry.register(info)
        if args.default:
            await ctx.registry.set_default(info.name)
        print(f"Node {info.name} registered at {info.url}")
    elif args.command == "list":
        default = await ctx.registry.get_default()
        for info in await ctx.registry.list_nodes():
            marker = " (default)" if info.name == default else ""
            print(json.dumps(info.to_dict()) + marker)
    else:
        store = FilePolicyStore(args.store) if args.store else MemoryPolicyStore()
        node = PolicyNode(args.name, store=store, host=args.host, port=args.port)
        await ctx.registry.register(NodeInfo(name=args.name, host=args.host, port=args.port))
        await node.serve_forever()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args)
    except PolicyMeshError as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    try:
        asyncio.run(run(args, CommandContext(config=config)))
    except PolicyMeshError as e:
        logger.debug(f"Command failed: {e.to_dict()}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except OSError as e:
        logger.debug(f"Command failed: {e!r}")
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        return EXIT_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
