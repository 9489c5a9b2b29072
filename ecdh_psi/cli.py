#!/usr/bin/env python3
# Copyright 2025 Ant Group Co., Ltd.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Command-line interface for two-party ECDH-PSI.

Examples:
    # Generate a party config file
    python -m ecdh_psi.cli config gen -p 8100 -o party.yaml

    # Run each party (two terminals or two machines)
    python -m ecdh_psi.cli run --rank 0 -c party.yaml --items alice.txt
    python -m ecdh_psi.cli run --rank 1 -c party.yaml --items bob.txt

    # Check both endpoints
    python -m ecdh_psi.cli status -c party.yaml

    # Run both sides in one process (development usage)
    python -m ecdh_psi.cli local --items-a alice.txt --items-b bob.txt

Items files hold one item per line; blank lines are skipped.

Exit status: 0 on success, 1 when no command is given, 2 when the protocol
rejects the input or a peer message, 3 on configuration, file or transport
errors.
"""

from __future__ import annotations

import argparse
import sys

import yaml

from ecdh_psi.config import (
    PartyConfig,
    default_log_level,
    dump_config,
    generate_config,
    load_config,
)
from ecdh_psi.errors import PsiError
from ecdh_psi.logging_config import get_logger, setup_logging
from ecdh_psi.messages import IntersectionResult

logger = get_logger(__name__)


def read_items(path: str) -> list[bytes]:
    """Read one item per line, dropping line endings and blank lines."""
    with open(path, "rb") as f:
        lines = [line.rstrip(b"\r\n") for line in f]
    return [line for line in lines if line]


def write_items(items: list[bytes], path: str | None) -> None:
    if path is None:
        for item in items:
            print(item.decode("utf-8", errors="replace"))
        return
    with open(path, "wb") as f:
        for item in items:
            f.write(item + b"\n")


def report(label: str, items: list[bytes], result: IntersectionResult) -> list[bytes]:
    matched = result.resolve(items)
    print(f"{label}: intersection size {len(result)}", file=sys.stderr)
    return matched


def cmd_config_gen(args: argparse.Namespace) -> None:
    config = generate_config(host=args.host, base_port=args.base_port)
    content = dump_config(config)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(content)
        print(f"Config written to {args.output}")
    else:
        print(content, end="")


def cmd_run(args: argparse.Namespace) -> None:
    from ecdh_psi.runtime.http import (
        CommConfig,
        HttpCommunicator,
        create_party_app,
        serve_in_background,
    )
    from ecdh_psi.runtime.session import run_psi

    config: PartyConfig = load_config(args.config)
    setup_logging(
        level=args.log_level or config.log_level, force=True  # type: ignore[arg-type]
    )
    if args.rank not in (0, 1):
        raise ValueError(f"--rank must be 0 or 1, got {args.rank}")
    peer = 1 - args.rank
    items = read_items(args.items)

    comm = HttpCommunicator(
        args.rank,
        list(config.endpoints),
        CommConfig(
            send_timeout=config.send_timeout,
            recv_timeout=config.recv_timeout,
            ready_timeout=args.ready_timeout,
        ),
    )
    port = args.port or config.port_of(args.rank)
    server, thread = serve_in_background(create_party_app(comm), args.bind_host, port)
    try:
        comm.wait_ready(peer)
        result = run_psi(items, comm, peer)
        write_items(report(f"Rank {args.rank}", items, result), args.output)
    finally:
        server.should_exit = True
        thread.join(timeout=5.0)
        comm.shutdown()


def cmd_local(args: argparse.Namespace) -> None:
    from ecdh_psi.runtime.session import run_local

    setup_logging(
        level=args.log_level or default_log_level(), force=True  # type: ignore[arg-type]
    )
    items_a = read_items(args.items_a)
    items_b = read_items(args.items_b)
    result_a, result_b = run_local(items_a, items_b)
    write_items(report("Party A", items_a, result_a), args.output)
    report("Party B", items_b, result_b)


def cmd_status(args: argparse.Namespace) -> None:
    import httpx

    config = load_config(args.config)
    for rank, endpoint in enumerate(config.endpoints):
        try:
            resp = httpx.get(f"{endpoint}/health", timeout=2.0)
            status = "OK" if resp.status_code == 200 else f"Status {resp.status_code}"
        except httpx.HTTPError as e:
            status = f"Unreachable ({e.__class__.__name__})"
        print(f"{rank:<6} | {endpoint:<30} | {status}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Two-party private set intersection (ECDH over Ristretto255)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Log level (default: from config or ECDH_PSI_LOG_LEVEL)",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(
        dest="config_command", help="Config commands"
    )
    gen_parser = config_subparsers.add_parser("gen", help="Generate party config")
    gen_parser.add_argument("-H", "--host", default="127.0.0.1", help="Host of both parties")
    gen_parser.add_argument("-p", "--base-port", type=int, default=8100, help="Base port")
    gen_parser.add_argument("-o", "--output", type=str, help="Output file path")

    run_parser = subparsers.add_parser("run", help="Run one party over HTTP")
    run_parser.add_argument("-c", "--config", required=True, help="Party config (YAML)")
    run_parser.add_argument("--rank", type=int, required=True, help="This party's rank")
    run_parser.add_argument("--items", required=True, help="Items file")
    run_parser.add_argument("-o", "--output", help="Write matched items here")
    run_parser.add_argument(
        "--bind-host", default="127.0.0.1", help="Interface to listen on"
    )
    run_parser.add_argument(
        "--port", type=int, default=None, help="Listen port (default: from config)"
    )
    run_parser.add_argument(
        "--ready-timeout",
        type=float,
        default=60.0,
        help="Seconds to wait for the peer endpoint",
    )

    local_parser = subparsers.add_parser("local", help="Run both parties in-process")
    local_parser.add_argument("--items-a", required=True, help="Items of party A")
    local_parser.add_argument("--items-b", required=True, help="Items of party B")
    local_parser.add_argument("-o", "--output", help="Write matched items here")

    status_parser = subparsers.add_parser("status", help="Check party endpoints")
    status_parser.add_argument("-c", "--config", required=True, help="Party config (YAML)")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        if args.command == "config":
            if args.config_command == "gen":
                cmd_config_gen(args)
            else:
                parser.print_help()
                return 1
        elif args.command == "run":
            cmd_run(args)
        elif args.command == "local":
            cmd_local(args)
        elif args.command == "status":
            cmd_status(args)
        else:
            parser.print_help()
            return 1
    except PsiError as e:
        logger.error(f"PSI run failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 2
    except (ValueError, yaml.YAMLError, OSError, RuntimeError) as e:
        # Bad config or items file, unreachable or stalled peer
        logger.error(f"{args.command} failed: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 3
    return 0


if __name__ == "__main__":
    sys.exit(main())
