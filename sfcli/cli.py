"""Command line entry point."""

from __future__ import annotations

import argparse
import os
import sys
from typing import MutableMapping, Sequence

from sfcli.book import Book, BookError
from sfcli.requirements import check_requirements

VERSION = "dev"

_ALIASED_VARIABLES = ("BRANCH", "ENV", "APPLICATION_NAME")

NOT_READY_MESSAGE = "You should fix the reported issues before starting reading the book."


def project_dir(directory: str | None = None) -> str:
    """Return the absolute project directory, the working directory by default."""
    if directory:
        if os.path.isabs(directory):
            return directory
        return os.path.abspath(directory)
    return os.getcwd()


def alias_platform_env(environ: MutableMapping[str, str]) -> MutableMapping[str, str]:
    """Fill unset SYMFONY_* variables from their PLATFORM_* counterparts."""
    for name in _ALIASED_VARIABLES:
        if environ.get("SYMFONY_" + name):
            continue
        value = environ.get("PLATFORM_" + name)
        if value:
            environ["SYMFONY_" + name] = value
    return environ


def _check_requirements_command(args: argparse.Namespace) -> int:
    ready = check_requirements()
    print()
    if ready:
        print("[OK] Congrats! You are ready to start reading the book.")
        return 0
    print(NOT_READY_MESSAGE, file=sys.stderr)
    return 1


def _checkout_command(args: argparse.Namespace) -> int:
    book = Book(dir=project_dir(args.dir), debug=args.debug, force=args.force)
    if not args.force:
        book.check_repository()
    try:
        book.checkout(args.step)
    except BookError:
        print()
        if not args.debug:
            print("Re-run the command with --debug to get more information about the error")
            print()
        raise
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="symfony",
        description=(
            "Symfony CLI helps developers manage projects, "
            "from local code to remote infrastructure"
        ),
    )
    parser.add_argument("--version", "-V", action="version", version=f"%(prog)s {VERSION}")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")

    check = commands.add_parser(
        "book:check-requirements",
        aliases=["book:check"],
        help=(
            "Check that you have all the pre-requisites locally to code while reading "
            'the "Symfony 5: The Fast Track" book'
        ),
    )
    check.set_defaults(handler=_check_requirements_command)

    checkout = commands.add_parser(
        "book:checkout",
        help='Check out a step of the "Symfony 5: The Fast Track" book repository',
    )
    checkout.add_argument("--dir", default="", help="Project directory")
    checkout.add_argument("--debug", action="store_true", help="Display commands output")
    checkout.add_argument(
        "--force",
        action="store_true",
        help="Force the use of the command without checking pre-requisites",
    )
    checkout.add_argument(
        "step",
        nargs="?",
        default="",
        help="The step of the book to checkout (code at the end of the step)",
    )
    checkout.set_defaults(handler=_checkout_command)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return its exit code."""
    alias_platform_env(os.environ)
    parser = _build_parser()
    args = parser.parse_args(list(sys.argv[1:] if argv is None else argv))
    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0
    try:
        return handler(args)
    except BookError as exc:
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())