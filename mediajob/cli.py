"""Command line interface for mediajob."""
from __future__ import annotations

import argparse
import asyncio
import logging
import mimetypes
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Sequence

import httpx

from . import __version__
from .cli_progress import JobProgressDisplay, console, render_configuration_summary, render_jobs
from .models import ClientConfig, Completed, OrchestratorConfig, VideoFile
from .utils.strings import capitalize_first


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug or --log-level is provided.
    Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    if silent or (not debug and not log_level and not os.getenv("LOG_LEVEL")):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    elif log_level:
        level = getattr(logging, log_level.upper(), logging.INFO)
    else:
        level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)

    from rich.logging import RichHandler

    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    return logging.getLevelName(level)


def _parse_env_line(raw_line: str) -> Optional[tuple[str, str]]:
    """``KEY=value`` pair from a dotenv line, or None for blanks/comments."""
    line = raw_line.strip()
    if line.startswith("export "):
        line = line[7:].lstrip()
    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key or key.startswith("#"):
        return None
    value = value.strip()
    if value[:1] in ("'", '"') and len(value) > 1 and value[-1] == value[0]:
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> Dict[str, str]:
    """Export the variables of a dotenv file; existing ones win unless ``override``."""
    if not path.is_file():
        reason = "env path is not a file" if path.exists() else "env file not found"
        raise CLIError(f"{reason}: {path}")
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    loaded = {}
    for pair in filter(None, map(_parse_env_line, lines)):
        key, value = pair
        if override or key not in os.environ:
            os.environ[key] = loaded[key] = value
    return loaded


def _env_file_for(explicit: Optional[Path]) -> Optional[Path]:
    if explicit is not None:
        return Path(explicit)
    candidate = Path.cwd() / ".env"
    return candidate if candidate.is_file() else None


def _guess_content_type(path: Path, explicit: Optional[str]) -> Optional[str]:
    if explicit:
        return explicit
    guessed, _ = mimetypes.guess_type(path.name)
    if guessed and guessed.startswith("video/"):
        return guessed
    return None


def _load_configs() -> tuple[ClientConfig, OrchestratorConfig]:
    try:
        return ClientConfig.from_env(), OrchestratorConfig.from_env()
    except ValueError as exc:
        raise CLIError(f"invalid configuration value: {exc}") from exc


def _api_client(config: ClientConfig):
    from .services import HTTPAPIClient

    return HTTPAPIClient(
        config.api_url,
        timeout=config.request_timeout,
        token=config.token,
        retries=config.retries,
    )


async def _run_upload(
    source: Path,
    stack_id: Optional[str],
    content_type: Optional[str],
    client_config: ClientConfig,
    orchestrator_config: OrchestratorConfig,
) -> int:
    from .orchestrator import UploadOrchestrator
    from .services import JobService

    video = VideoFile.from_path(source, mime_type=_guess_content_type(source, content_type))
    display = JobProgressDisplay(source)

    async with _api_client(client_config) as api:
        service = JobService.from_config(api, client_config)
        async with UploadOrchestrator(service, orchestrator_config) as orchestrator:
            orchestrator.on_state(display.on_state)
            try:
                await orchestrator.start(video, stack_id)
                state = await orchestrator.wait()
            except asyncio.CancelledError:
                await orchestrator.cancel()
                display.stop()
                raise
            display.complete(state)
            return 0 if isinstance(state, Completed) else 1


async def _run_status(job_id: str, client_config: ClientConfig) -> int:
    from .services import JobService

    async with _api_client(client_config) as api:
        status = await JobService.from_config(api, client_config).query_job_status(job_id)

    line = f"[cyan]{job_id}[/cyan]: {capitalize_first(status.status)}"
    if status.progress:
        line += f" {status.progress.percentage:.0f}%"
        if status.progress.message:
            line += f" - {status.progress.message}"
    console.print(line)
    return 0


async def _run_cancel(job_id: str, client_config: ClientConfig) -> int:
    from .services import JobService

    async with _api_client(client_config) as api:
        ack = await JobService.from_config(api, client_config).cancel_job(job_id)

    console.print(ack.get("message") or f"Cancellation requested for {job_id}")
    return 0


async def _run_jobs(
    status: Optional[str],
    limit: Optional[int],
    client_config: ClientConfig,
) -> int:
    from .services import JobService

    async with _api_client(client_config) as api:
        jobs, total = await JobService.from_config(api, client_config).list_jobs(
            status=status, limit=limit
        )

    render_jobs(jobs, total)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mediajob",
        description="Upload a video and track its processing job.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"mediajob {__version__}",
    )

    commands = parser.add_subparsers(dest="command")

    upload = commands.add_parser("upload", help="Upload a video and wait for the results")
    upload.add_argument("source", type=Path, help="Video file path")
    upload.add_argument(
        "-s",
        "--stack-id",
        default=None,
        help="Processing stack (default: unified_video_analyzer)",
    )
    upload.add_argument(
        "-t",
        "--content-type",
        default=None,
        help="Content type sent with the upload (default: guessed, else video/mp4)",
    )

    status = commands.add_parser("status", help="Show the status of a job")
    status.add_argument("job_id")

    cancel = commands.add_parser("cancel", help="Cancel a job")
    cancel.add_argument("job_id")

    jobs = commands.add_parser("jobs", help="List recent jobs")
    jobs.add_argument("--status", default=None, help="Only jobs with this status")
    jobs.add_argument("--limit", type=int, default=20, help="Maximum number of jobs")

    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = _env_file_for(args.env_file)
    if used_env_file is not None:
        try:
            _load_env_file(used_env_file)
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return 1

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if args.command is None:
        parser.print_help()
        return 0

    try:
        client_config, orchestrator_config = _load_configs()

        if args.command == "upload":
            source = Path(args.source).expanduser()
            if not source.is_file():
                raise CLIError(f"source is not a file: {source}")

            if not args.silent:
                render_configuration_summary(
                    {
                        "Source": str(source),
                        "Stack": args.stack_id or orchestrator_config.default_stack_id,
                        "API": client_config.api_url,
                        "Auth": "token" if client_config.token else "(none)",
                        "Poll Interval": f"{orchestrator_config.polling_interval:g}s",
                        "Max Polls": orchestrator_config.max_polling_attempts,
                        "Env File": str(used_env_file) if used_env_file else "-",
                        "Logging": effective_log_mode,
                    }
                )
            return asyncio.run(
                _run_upload(
                    source,
                    stack_id=args.stack_id,
                    content_type=args.content_type,
                    client_config=client_config,
                    orchestrator_config=orchestrator_config,
                )
            )

        if args.command == "status":
            return asyncio.run(_run_status(args.job_id, client_config))
        if args.command == "cancel":
            return asyncio.run(_run_cancel(args.job_id, client_config))
        if args.command == "jobs":
            return asyncio.run(_run_jobs(args.status, args.limit, client_config))

        raise CLIError(f"unknown command: {args.command}")
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except (RuntimeError, OSError, httpx.HTTPError) as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
