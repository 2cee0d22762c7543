"""
CLI entry point for ergo.

Usage
─────
  # Run anything: system command, cached command, or generate a new one
  ergo ls -la
  ergo weather Madrid
  ergo "show me the current date"          # conversational mode

  # It did not work? Regenerate the last command
  ergo --nope                              # use the last run's stderr
  ergo --nope "print the time in UTC"      # with feedback

  # Cache and configuration
  ergo --list-cache | --cache-stats | --clear-cache
  ergo --remove-command weather
  ergo --set-api-key sk-ant-...  |  ergo --config

Handlers are standalone functions (cmd_run, cmd_list_cache, ...) so they can
be unit-tested without invoking argparse.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

from abiogenesis.cache.resolver import TierResolver
from abiogenesis.cache.store import CommandStore
from abiogenesis.config.loader import Config, ConfigLoader
from abiogenesis.exceptions import AbiogenesisError, CommandExecutionError
from abiogenesis.executor.context import ExecutionContextStore
from abiogenesis.executor.models import ExecutionResult
from abiogenesis.executor.runner import ProcessRunner
from abiogenesis.executor.sandbox import SandboxExecutor
from abiogenesis.generator.llm_generator import CommandGenerator, GeneratorConfig
from abiogenesis.permissions.console import Console
from abiogenesis.permissions.gate import PermissionGate
from abiogenesis.router.intent_router import IntentRouter

__all__ = [
    "build_parser",
    "setup_logging",
    "build_router",
    "cmd_run",
    "cmd_feedback",
    "cmd_list_cache",
    "cmd_cache_stats",
    "cmd_remove_command",
    "cmd_clear_cache",
    "cmd_set_api_key",
    "main",
]

logger = logging.getLogger(__name__)


# ── Argument parser ────────────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="ergo",
        description="AI-powered command interceptor - cogito, ergo sum",
        epilog=(
            "ergo bridges intent (cogito) to execution (sum) by generating "
            "commands on the fly when they don't exist"
        ),
    )
    parser.add_argument(
        "intent",
        nargs=argparse.REMAINDER,
        help="The command or intent to execute",
    )
    parser.add_argument(
        "--set-api-key",
        default=None,
        dest="set_api_key",
        metavar="API_KEY",
        help="Set the Anthropic API key",
    )
    parser.add_argument(
        "--config",
        action="store_true",
        default=False,
        help="Show configuration information",
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        default=False,
        help="Clear the command cache",
    )
    parser.add_argument(
        "--list-cache",
        action="store_true",
        default=False,
        help="List cached commands and their permissions",
    )
    parser.add_argument(
        "--remove-command",
        default=None,
        metavar="COMMAND_NAME",
        help="Remove a specific command from cache",
    )
    parser.add_argument(
        "--cache-stats",
        action="store_true",
        default=False,
        help="Show cache statistics",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable verbose output",
    )
    parser.add_argument(
        "-n", "--nope",
        nargs="?",
        const="",
        default=None,
        metavar="FEEDBACK",
        help="Regenerate the last command (uses stderr as context if no feedback provided)",
    )
    return parser


# ── Wiring ────────────────────────────────────────────────────────────────────


def setup_logging(verbose: bool, log_path: Path) -> None:
    """Send log records to *log_path* so they never mix with command output."""
    level = logging.DEBUG if verbose else logging.INFO
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        logging.basicConfig(level=logging.WARNING, format="[%(levelname)s] %(message)s")
        return
    logging.basicConfig(
        filename=str(log_path),
        filemode="a",
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_router(
    config: Config,
    verbose: bool = False,
    resolver: Optional[TierResolver] = None,
    runner: Optional[ProcessRunner] = None,
    console: Optional[Console] = None,
    generator: Optional[CommandGenerator] = None,
    out: Optional[TextIO] = None,
    err: Optional[TextIO] = None,
) -> IntentRouter:
    """Assemble the production object graph; every port can be overridden."""
    store = CommandStore(resolver=resolver)
    context_store = ExecutionContextStore(store.write_dir)
    if generator is None:
        generator = CommandGenerator(GeneratorConfig(
            backend="stub" if config.use_mock else "anthropic",
            api_key=config.anthropic_api_key or "",
        ))
    executor = SandboxExecutor(
        scripts=store,
        context_store=context_store,
        runner=runner,
        verbose=verbose,
        stdout=out,
        stderr=err,
    )
    gate = PermissionGate(store, console=console, verbose=verbose)
    return IntentRouter(
        store=store,
        generator=generator,
        executor=executor,
        gate=gate,
        context_store=context_store,
        verbose=verbose,
        out=out,
        err=err,
    )


# ── Command implementations ───────────────────────────────────────────────────


def cmd_run(router: IntentRouter, intent: list[str]) -> Optional[ExecutionResult]:
    """Route and run *intent*."""
    logger.info("Processing intent: %s", intent)
    return router.process_intent(intent)


def cmd_feedback(router: IntentRouter, feedback: str) -> Optional[ExecutionResult]:
    """Regenerate the last generated command with *feedback* and run it."""
    return router.process_corrective_feedback(feedback)


def cmd_list_cache(store: CommandStore, out: Optional[TextIO] = None) -> None:
    """Print cached commands, their permissions and the user's decisions."""
    out = out or sys.stdout
    commands = store.list()
    if not commands:
        out.write("No commands in cache\n")
        return
    out.write("Cached Commands:\n")
    out.write("=" * 50 + "\n")
    for name, record, decision in commands:
        out.write(f"{name}\n")
        out.write(f"   {record.description}\n")
        if record.permissions:
            out.write("   Permissions:\n")
            for perm in record.permissions:
                out.write(f"      {perm.permission} - {perm.reason}\n")
        if decision is not None:
            out.write(f"   User Decision: {decision.consent.label}\n")
        out.write("\n")


def cmd_cache_stats(store: CommandStore, out: Optional[TextIO] = None) -> None:
    (out or sys.stdout).write(f"{store.stats()}\n")


def cmd_remove_command(store: CommandStore, name: str, out: Optional[TextIO] = None) -> bool:
    out = out or sys.stdout
    if store.remove(name):
        out.write(f"Removed command '{name}' from cache\n")
        return True
    out.write(f"Command '{name}' not found in cache\n")
    return False


def cmd_clear_cache(store: CommandStore, out: Optional[TextIO] = None) -> None:
    store.clear()
    (out or sys.stdout).write("Cache cleared successfully\n")


def cmd_set_api_key(loader: ConfigLoader, api_key: str, out: Optional[TextIO] = None) -> None:
    config = loader.load_from_file() if loader.get_config_path().is_file() else Config()
    loader.set_api_key(config, api_key)
    (out or sys.stdout).write("API key saved successfully\n")


# ── Entry point ───────────────────────────────────────────────────────────────


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point. Returns exit code."""
    parser = build_parser()
    ns = parser.parse_args(argv)

    loader = ConfigLoader()
    try:
        setup_logging(ns.verbose, loader.get_log_path())

        if ns.set_api_key is not None:
            cmd_set_api_key(loader, ns.set_api_key)
            return 0

        if ns.config:
            loader.show_config_info()
            return 0

        if ns.clear_cache:
            cmd_clear_cache(CommandStore())
            return 0

        if ns.list_cache:
            cmd_list_cache(CommandStore())
            return 0

        if ns.remove_command is not None:
            cmd_remove_command(CommandStore(), ns.remove_command)
            return 0

        if ns.cache_stats:
            cmd_cache_stats(CommandStore())
            return 0

        if ns.nope is not None:
            router = build_router(loader.load(), verbose=ns.verbose)
            cmd_feedback(router, ns.nope)
            return 0

        if not ns.intent:
            print("No intent provided. Use 'ergo --help' for usage information.", file=sys.stderr)
            return 0

        router = build_router(loader.load(), verbose=ns.verbose)
        cmd_run(router, ns.intent)
        return 0

    except CommandExecutionError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return exc.returncode or 1
    except AbiogenesisError as exc:
        logger.debug("ergo failed", exc_info=True)
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
