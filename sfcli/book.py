"""Managing a local clone of the book's companion repository."""

from __future__ import annotations

import os
import subprocess
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Mapping, Sequence

from sfcli.requirements import check_requirements

BOOK_REPOSITORY_PREFIX = "https://github.com/the-fast-track/book-"


class BookError(Exception):
    """Raised when a book operation cannot be completed."""


class StepError(BookError):
    """Raised when a command run during a step fails."""

    def __init__(self, args: Sequence[str], returncode: int | None, output: str) -> None:
        super().__init__(f"command failed: {' '.join(args)}")
        self.command = list(args)
        self.returncode = returncode
        self.output = output


def ask_confirmation(message: str, default: bool = True) -> bool:
    """Ask a yes/no question on the terminal."""
    suffix = " [Y/n] " if default else " [y/N] "
    try:
        answer = input(message + suffix).strip().lower()
    except EOFError:
        return default
    if not answer:
        return default
    return answer in ("y", "yes")


@contextmanager
def _working_directory(path: str | os.PathLike) -> Iterator[None]:
    previous = os.getcwd()
    os.chdir(path)
    try:
        yield
    finally:
        os.chdir(previous)


def _section(title: str) -> None:
    print()
    print(title)
    print("-" * len(title))
    print()


def _banner(message: str, debug: bool) -> None:
    if debug:
        _section(message)
    else:
        print(f"{message}: ", end="", flush=True)


def run_step(
    args: Sequence[str],
    debug: bool = False,
    skip_errors: bool = False,
    env: Mapping[str, str] | None = None,
) -> None:
    """Run a command, reporting OK or KO; raises StepError unless errors are skipped."""
    environment = dict(os.environ) if env is None else dict(env)
    output = ""
    error: OSError | None = None
    try:
        if debug:
            completed = subprocess.run(list(args), env=environment)
        else:
            completed = subprocess.run(
                list(args),
                env=environment,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            output = completed.stdout or ""
        returncode: int | None = completed.returncode
    except OSError as exc:
        error = exc
        returncode = None

    if returncode != 0 and not skip_errors:
        if not debug:
            print("[ KO ]")
        print(output, end="")
        raise StepError(args, returncode, output) from error
    if not debug:
        print("[ OK ]")


@dataclass
class Book:
    """A working copy of the book repository."""

    dir: str
    debug: bool = False
    force: bool = False
    auto_confirm: bool = False
    confirm: Callable[[str], bool] = field(default=ask_confirmation, repr=False)

    def _path(self, *parts: str) -> Path:
        return Path(self.dir, *parts)

    def _run(self, args: Sequence[str], skip_errors: bool = False, env=None) -> None:
        run_step(args, self.debug, skip_errors, env)

    def _ok(self) -> None:
        if not self.debug:
            print("[ OK ]")

    def check_repository(self) -> None:
        """Make sure the directory is a clone of the book repository."""
        if not self._path(".git").exists():
            raise BookError(
                "the current directory is not a clone of the book repository, no .git directory found"
            )
        if self.force:
            return
        try:
            completed = subprocess.run(
                ["git", "config", "--get", "remote.origin.url"],
                cwd=self.dir,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            raise BookError(f"unable to get the Git information:\n{exc}") from exc
        if completed.returncode != 0:
            raise BookError(
                f"unable to get the Git information:\nexit status {completed.returncode}\n"
                f"{completed.stdout}"
            )
        if not completed.stdout.startswith(BOOK_REPOSITORY_PREFIX):
            raise BookError("the current directory does not seem to be a clone of the book repository")

    def _touch_env_local(self) -> None:
        _banner("[WEB] Adding .env.local", self.debug)
        self._path(".env.local").write_bytes(b"")
        self._ok()

    def _untracked_files_ok(self) -> bool:
        _banner("[GIT] Check Git un-tracked files", self.debug)
        try:
            completed = subprocess.run(
                ["git", "ls-files", "--exclude-standard", "--others"],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
            output, failed = completed.stdout, completed.returncode != 0
        except OSError:
            output, failed = "", True
        if failed or output:
            if not self.debug:
                print("[ KO ]")
            print(output)
            return self.force or self.confirm(
                "WARNING There are un-tracked files in the repository, do you want to discard them?"
            )
        self._ok()
        return True

    def checkout(self, step: str) -> bool:
        """Reset the project to the code at the end of a step; False when aborted."""
        with _working_directory(self.dir):
            return self._checkout(step)

    def _checkout(self, step: str) -> bool:
        tag = "step-" + step.replace(".", "-")
        branch = "work-" + tag
        spa = str(self._path("spa"))
        consumer = self._path("src", "MessageHandler", "CommentMessageHandler.php")

        _banner("[GIT] Check for not yet committed changes", self.debug)
        try:
            self._run(["git", "diff-index", "--quiet", "HEAD", "--"])
        except StepError:
            if not self.force and not self.confirm(
                "WARNING There are not yet committed changes in the repository, "
                "do you want to discard them?"
            ):
                return False

        if not self._untracked_files_ok():
            return False

        if not self.force and not self.auto_confirm and not self.confirm(
            "WARNING All current code, data, and containers are going to be REMOVED, "
            "do you confirm?"
        ):
            return False

        print()
        _banner("[GIT] Removing Git ignored files (vendor, cache, ...)", self.debug)
        self._run(["git", "clean", "-d", "-f", "-x"])
        _banner("[GIT] Resetting Git staged files", self.debug)
        self._run(["git", "reset", "HEAD", "."])
        _banner("[GIT] Removing un-tracked Git files", self.debug)
        self._run(["git", "checkout", "."])

        self._touch_env_local()

        _banner("[WEB] Stopping Docker Containers", self.debug)
        if self._path("docker-compose.yaml").exists():
            self._run(["docker-compose", "down", "--remove-orphans"])
        else:
            print("Skipped for this step")

        _banner("[WEB] Stopping the Local Web Server", self.debug)
        self._run(["symfony", "server:stop"], skip_errors=True)

        _banner("[WEB] Stopping the SymfonyCloud tunnel", self.debug)
        self._run(["symfony", "tunnel:stop"], skip_errors=True)

        _banner("[GIT] Checking out the step", self.debug)
        self._run(["git", "checkout", "-B", branch, tag])

        _banner("[SPA] Stopping the Local Web Server", self.debug)
        if os.path.exists(spa):
            self._run(["symfony", "server:stop", "--dir", spa], skip_errors=True)
        else:
            print("Skipped for this step")

        _banner("[WEB] Installing Composer dependencies (might take some time)", self.debug)
        self._run(["symfony", "composer", "install"])

        _banner("[WEB] Installing PHPUnit (might take some time)", self.debug)
        if self._path("bin", "phpunit").exists():
            self._run(["symfony", "php", os.path.join("bin", "phpunit"), "install"])
        else:
            print("Skipped for this step")

        self._touch_env_local()

        _banner("[WEB] Starting Docker Compose", self.debug)
        if self._path("docker-compose.yaml").exists():
            self._run(["docker-compose", "up", "-d"])
            _banner("[WEB] Waiting for the Containers to be ready", self.debug)
            time.sleep(10 if consumer.exists() else 5)
            self._ok()
        else:
            print("Skipped for this step")

        _banner("[WEB] Migrating the database", self.debug)
        if self._path("src", "Migrations").exists() or self._path("migrations").exists():
            self._run(["symfony", "console", "doctrine:migrations:migrate", "-n"])
        else:
            print("Skipped for this step")

        _banner("[WEB] Inserting Fixtures", self.debug)
        if self._path("src", "DataFixtures").exists():
            self._run(["symfony", "console", "doctrine:fixtures:load", "-n"])
        else:
            print("Skipped for this step")

        has_package_json = self._path("package.json").exists()
        _banner("[WEB] Installing Node dependencies (might take some time)", self.debug)
        if has_package_json:
            self._run(["yarn", "install"])
        else:
            print("Skipped for this step")

        _banner("[WEB] Building CSS and JS assets", self.debug)
        if has_package_json:
            self._run(["yarn", "encore", "dev"])
        else:
            print("Skipped for this step")

        _banner("[WEB] Starting the Local Web Server", self.debug)
        self._run(["symfony", "server:start", "-d"])

        _banner("[WEB] Starting Message Consumer", self.debug)
        if consumer.exists():
            self._run(
                [
                    "symfony", "run", "-d", "--watch", "config,src,templates,vendor",
                    "symfony", "console", "messenger:consume", "async", "-vv",
                ]
            )
        else:
            print("Skipped for this step")

        _banner("[SPA] Installing Node dependencies (might take some time)", self.debug)
        if os.path.exists(spa):
            with _working_directory(spa):
                self._run(["yarn", "install"])
        else:
            print("Skipped for this step")

        _banner("[SPA] Building CSS and JS assets", self.debug)
        if os.path.exists(spa):
            endpoint = self._web_server_url()
            with _working_directory(spa):
                self._run(["yarn", "encore", "dev"], env={**os.environ, "API_ENDPOINT": endpoint})
        else:
            print("Skipped for this step")

        _banner("[SPA] Starting the Local Web Server", self.debug)
        if os.path.exists(spa):
            self._run(["symfony", "server:start", "-d", "--passthru", "index.html", "--dir", spa])
        else:
            print("Skipped for this step")

        print()
        print("[OK] All done!")
        return True

    def _web_server_url(self) -> str:
        try:
            completed = subprocess.run(
                ["symfony", "var:export", "SYMFONY_PROJECT_DEFAULT_ROUTE_URL"],
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as exc:
            raise BookError(f"unable to get the URL of the local web server: {exc}") from exc
        if completed.returncode != 0:
            raise BookError(
                f"unable to get the URL of the local web server: exit status {completed.returncode}"
            )
        if not completed.stdout:
            raise BookError(
                f"unable to get the URL of the local web server:\n{completed.stderr}\n{completed.stdout}"
            )
        return completed.stdout

    def clone(self, version: str) -> None:
        """Clone the book repository for a version and get ready for the first step."""
        _section("Checking Book Requirements")
        ready = check_requirements()
        print()
        if not ready:
            raise BookError("You should fix the reported issues before starting reading the book.")

        _section("Cloning the Repository")
        try:
            completed = subprocess.run(["git", "clone", BOOK_REPOSITORY_PREFIX + version, self.dir])
        except OSError as exc:
            raise BookError(f"error cloning the Git repository for the book: {exc}") from exc
        if completed.returncode != 0:
            raise BookError(
                f"error cloning the Git repository for the book: exit status {completed.returncode}"
            )
        print()

        _section("Getting Ready for the First Step of the Book")
        try:
            self.checkout("3")
        except BookError:
            print()
            if not self.debug:
                print("Re-run the command with --debug to get more information about the error")
                print()
            raise