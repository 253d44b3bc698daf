from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict

from .cache import QueueCache
from .config import Config
from .notifications import Connected, notification_to_dict

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_WAIT = 10.0
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _positive_float(value: str) -> float:
    fvalue = float(value)
    if fvalue <= 0:
        raise argparse.ArgumentTypeError("value must be a positive number")
    return fvalue


def _port(value: str) -> int:
    ivalue = int(value)
    if not 0 < ivalue < 65536:
        raise argparse.ArgumentTypeError("port must be between 1 and 65535")
    return ivalue


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m ami_queue_cache",
        description="Watch and manage Asterisk call queues over AMI.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config TOML (defaults to ./config.toml when present).",
    )
    parser.add_argument("--host", type=str, default=None, help="AMI host (overrides config).")
    parser.add_argument("--port", type=_port, default=None, help="AMI port (overrides config).")
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        default=None,
        help="Root log level.",
    )
    parser.add_argument(
        "--connect-wait",
        type=_positive_float,
        default=DEFAULT_CONNECT_WAIT,
        help="Seconds one-shot commands wait for the AMI login.",
    )

    subparsers = parser.add_subparsers(
        dest="command", metavar="<command>", required=True
    )

    subparsers.add_parser(
        "watch",
        help="Print every cache notification as a JSON line until interrupted.",
    )
    subparsers.add_parser("queues", help="Print every queue with its members.")

    agents_cmd = subparsers.add_parser("agents", help="Print queue members.")
    agents_cmd.add_argument("--queue", "-q", default=None, help="Only members of this queue.")
    agents_cmd.add_argument(
        "--available",
        action="store_true",
        help="Only members that are idle and not paused (requires --queue).",
    )

    pause_cmd = subparsers.add_parser("pause", help="Pause a member.")
    pause_cmd.add_argument("interface", help="Member interface, e.g. PJSIP/1001.")
    pause_cmd.add_argument("--reason", default="", help="Pause reason.")
    pause_cmd.add_argument("--queue", "-q", default=None, help="Only in this queue (default: all).")

    unpause_cmd = subparsers.add_parser("unpause", help="Unpause a member.")
    unpause_cmd.add_argument("interface")
    unpause_cmd.add_argument("--queue", "-q", default=None, help="Only in this queue (default: all).")

    add_cmd = subparsers.add_parser("add", help="Add a member to a queue.")
    add_cmd.add_argument("interface")
    add_cmd.add_argument("queue")
    add_cmd.add_argument("--name", default="", help="Member display name.")
    add_cmd.add_argument("--penalty", type=int, default=0)
    add_cmd.add_argument("--paused", action="store_true", help="Add the member paused.")

    remove_cmd = subparsers.add_parser("remove", help="Remove a member from a queue.")
    remove_cmd.add_argument("interface")
    remove_cmd.add_argument("queue")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "agents" and args.available and not args.queue:
        parser.error("--available requires --queue")
    if args.log_level:
        logging.getLogger().setLevel(args.log_level)

    config = _resolve_config(args, parser)
    return asyncio.run(run(args, QueueCache.from_config(config)))


def _resolve_config(args: argparse.Namespace, parser: argparse.ArgumentParser) -> Config:
    try:
        config = Config.load(args.config)
    except FileNotFoundError as exc:
        parser.error(str(exc))
    except ValueError as exc:
        parser.error(f"Invalid configuration: {exc}")

    if args.host:
        config.ami.HOST = args.host
    if args.port:
        config.ami.PORT = args.port

    try:
        config.ami.validate()
    except ValueError as exc:
        parser.error(f"{exc}. Set them in the environment or .env.")
    return config


async def run(args: argparse.Namespace, cache: QueueCache) -> int:
    """Run ``args.command`` against ``cache`` and always shut it down afterwards."""
    try:
        if args.command == "watch":
            return await watch(cache)

        if not await wait_connected(cache, args.connect_wait):
            print(
                f"Could not log in to Asterisk within {args.connect_wait:g}s",
                file=sys.stderr,
            )
            return 1
        return await COMMANDS[args.command](cache, args)
    finally:
        await cache.shutdown()


async def wait_connected(cache: QueueCache, timeout: float) -> bool:
    ready = asyncio.Event()
    unsubscribe = cache.subscribe(lambda _: ready.set(), Connected)
    cache.connect()
    try:
        await asyncio.wait_for(ready.wait(), timeout)
    except asyncio.TimeoutError:
        return False
    finally:
        unsubscribe()
    return True


async def watch(cache: QueueCache, stop: asyncio.Event | None = None) -> int:
    """Stream notifications to stdout until ``stop`` is set (SIGINT/SIGTERM by default)."""
    loop = asyncio.get_running_loop()
    signals: tuple[signal.Signals, ...] = ()
    if stop is None:
        stop = asyncio.Event()
        signals = (signal.SIGINT, signal.SIGTERM)
        for sig in signals:
            loop.add_signal_handler(sig, stop.set)

    unsubscribe = cache.subscribe(lambda n: _print_json(notification_to_dict(n)))
    cache.connect()
    try:
        await stop.wait()
        logger.info("Stopping")
    finally:
        unsubscribe()
        for sig in signals:
            loop.remove_signal_handler(sig)
    return 0


async def _queues(cache: QueueCache, args: argparse.Namespace) -> int:
    if not await cache.resync():
        return 1
    _print_json([queue.to_dict() for queue in cache.get_queues()], indent=2)
    return 0


async def _agents(cache: QueueCache, args: argparse.Namespace) -> int:
    if not await cache.resync():
        return 1
    if args.available:
        agents = cache.get_available_agents(args.queue)
    elif args.queue:
        agents = cache.get_queue_agents(args.queue)
    else:
        agents = cache.get_all_agents()
    _print_json([agent.to_dict() for agent in agents], indent=2)
    return 0


async def _pause(cache: QueueCache, args: argparse.Namespace) -> int:
    return _exit_code(await cache.pause_member(args.interface, args.reason, args.queue))


async def _unpause(cache: QueueCache, args: argparse.Namespace) -> int:
    return _exit_code(await cache.unpause_member(args.interface, args.queue))


async def _add(cache: QueueCache, args: argparse.Namespace) -> int:
    return _exit_code(
        await cache.add_member_to_queue(
            args.interface, args.name, args.queue, args.paused, args.penalty
        )
    )


async def _remove(cache: QueueCache, args: argparse.Namespace) -> int:
    return _exit_code(await cache.remove_member_from_queue(args.interface, args.queue))


COMMANDS: Dict[str, Callable[[QueueCache, argparse.Namespace], Awaitable[int]]] = {
    "queues": _queues,
    "agents": _agents,
    "pause": _pause,
    "unpause": _unpause,
    "add": _add,
    "remove": _remove,
}


def _exit_code(ok: bool) -> int:
    return 0 if ok else 1


def _print_json(data: Any, indent: int | None = None) -> None:
    print(json.dumps(data, indent=indent), flush=True)


__all__ = ["main", "build_parser", "run", "watch", "wait_connected"]
