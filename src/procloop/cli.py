"""procloop command line.

Usage:
    procloop [--env ENV] [--workers N] whoami
    procloop cat PATH
    procloop run -- ARG [ARG ...]
    procloop package-dump [--path DIR]
"""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from dataclasses import replace

from .app import Application, ApplicationRoot, Context
from .config import Config, Environment, load_config
from .errors import ProcessUtilityError

__all__ = ["ProcloopCommands", "build_parser", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="procloop",
        description="Run external commands without blocking the event loop.",
    )
    parser.add_argument("--env", choices=[e.value for e in Environment], default=None)
    parser.add_argument("--workers", type=int, default=None, help="worker pool size")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("whoami", help="print the current user")

    cat = commands.add_parser("cat", help="print a file")
    cat.add_argument("path")

    run = commands.add_parser("run", help="run a command and report its result")
    run.add_argument("arguments", nargs=argparse.REMAINDER)

    dump = commands.add_parser("package-dump", help="print a Swift package's tools version")
    dump.add_argument("--path", default=None)
    return parser


class ProcloopCommands(ApplicationRoot):
    """Runs one parsed CLI command as the application's only handler."""

    def __init__(self, args: argparse.Namespace) -> None:
        self.args = args

    def load_config(self) -> Config:
        config = load_config()
        if self.args.env is not None:
            config = replace(config, environment=Environment.from_string(self.args.env))
        if self.args.workers is not None:
            config = replace(config, workers=max(1, self.args.workers))
        return config

    def configure(self, app: Application) -> None:
        app.logger.debug(f"Configured {app!r} for command {self.args.command}")

    def routes(self, app: Application) -> None:
        args = self.args

        async def command(ctx: Context) -> int:
            try:
                return await _dispatch(ctx, args)
            except ProcessUtilityError as e:
                print(f"procloop: {e}", file=sys.stderr)
                return 1

        app.on_startup(command, name=args.command)


async def _dispatch(ctx: Context, args: argparse.Namespace) -> int:
    process = ctx.process
    if args.command == "whoami":
        print(await process.whoami())
        return 0
    if args.command == "cat":
        print(await process.cat(args.path))
        return 0
    if args.command == "run":
        arguments = list(args.arguments)
        if arguments[:1] == ["--"]:
            del arguments[0]
        if not arguments:
            print("procloop: run needs a command", file=sys.stderr)
            return 2
        result = await process.execute(arguments)
        if result.output:
            print(result.output)
        if result.error:
            print(result.error, file=sys.stderr)
        ctx.logger.debug(f"{arguments[0]} exited with status {result.status}")
        return result.status if 0 <= result.status < 256 else 1
    if args.command == "package-dump":
        package = process.swift.package
        if args.path is not None:
            package = package.at(args.path)
        dump = await package.dump()
        print(dump.tools_version.version)
        return 0
    raise ValueError(f"unknown command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    sys.exit(ProcloopCommands(args).main())


if __name__ == "__main__":
    main()
