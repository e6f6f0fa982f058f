#!/usr/bin/env python3
"""
Command line entry point of SiteAudit.

Commands:
  audit URL   Crawl a site, analyze every page and write the reports
  config      Show or change the persistent AI configuration

Group options:
  --log-level LEVEL   Logging level (DEBUG, INFO, ...)
  --log-file PATH     Also write logs to this file (rotated)
  --version, -v       Show the SiteAudit version

Example:
  site-audit audit https://example.com --context "Company site" --category Corporate --max-pages 20
"""
import asyncio
import os
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from pydantic import ValidationError

from site_audit import __version__
from site_audit import config as config_module
from site_audit.config import AppConfig, AuditOptions, load_config, save_config
from site_audit.engine import start_audit
from site_audit.logger import init_logging
from site_audit.utils import VALID_CATEGORIES

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str) -> None:
    click.secho(message, fg="red", err=True)
    sys.exit(1)


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors())


def mask_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:3]}...{value[-4:]}"


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, "--version", "-v", message="SiteAudit, version %(version)s")
@click.option(
    "--log-level", "log_level",
    default="INFO", show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Logging level",
)
@click.option(
    "--log-file", "log_file",
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help="Path of a log file (console only when omitted)",
)
@click.pass_context
def cli(ctx, log_level, log_file):
    """SiteAudit: crawl a website and audit accessibility, SEO, performance and content."""
    init_logging(level=log_level, log_file=str(log_file) if log_file else None)
    ctx.ensure_object(dict)


@cli.command("audit", context_settings=CONTEXT_SETTINGS)
@click.argument("url")
@click.option("--context", "-c", default="", help="What the site is for (used in AI prompts)")
@click.option(
    "--category",
    default="General", show_default=True,
    help=f"Site category: {', '.join(VALID_CATEGORIES)}",
)
@click.option("--max-depth", type=int, default=5, show_default=True, help="Maximum crawl depth")
@click.option("--max-pages", type=int, default=50, show_default=True, help="Maximum number of pages")
@click.option(
    "--output", "-o", "output_dir",
    default="./audit_results", show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Directory for reports, screenshots and archive",
)
@click.option("--exclude", default="", help="Comma-separated URL patterns to skip, e.g. '/admin/*,/login'")
@click.option("--auth", default=None, help="HTTP basic auth as user:pass")
@click.option("--no-screenshots", is_flag=True, help="Do not take page screenshots")
@click.option("--no-archive", is_flag=True, help="Do not archive page HTML")
@click.option("--no-pdf", is_flag=True, help="Do not print the PDF report")
@click.option("--ai-provider", type=click.Choice(["ollama", "openai"]), default=None, help="Override the AI provider")
@click.option("--ollama-model", default=None, help="Override the Ollama model")
@click.option("--ollama-host", default=None, help="Override the Ollama host")
@click.option("--openai-model", default=None, help="Override the OpenAI model")
@click.option("--openai-key", default=None, help="Override the OpenAI API key")
@click.option("--request-delay", type=float, default=1.0, show_default=True, help="Delay between page loads (seconds)")
@click.option("--debug", is_flag=True, help="Print the traceback on failure")
def audit(
    url, context, category, max_depth, max_pages, output_dir, exclude, auth,
    no_screenshots, no_archive, no_pdf, ai_provider, ollama_model, ollama_host,
    openai_model, openai_key, request_delay, debug,
):
    """Audit the website at URL."""
    try:
        options = AuditOptions(
            url=url,
            context=context,
            category=category,
            max_depth=max_depth,
            max_pages=max_pages,
            output_dir=output_dir,
            exclude_patterns=exclude,
            auth=auth,
            take_screenshots=not no_screenshots,
            create_archive=not no_archive,
            generate_pdf=not no_pdf,
            request_delay=request_delay,
        )
    except ValidationError as exc:
        print_error(f"Invalid options: {_validation_message(exc)}")

    overrides: Dict[str, Any] = {"ai": {"ollama": {}, "openai": {}}}
    if ai_provider:
        overrides["ai"]["provider"] = ai_provider
    if ollama_model:
        overrides["ai"]["ollama"]["model"] = ollama_model
    if ollama_host:
        overrides["ai"]["ollama"]["host"] = ollama_host
    if openai_model:
        overrides["ai"]["openai"]["model"] = openai_model
    if openai_key:
        overrides["ai"]["openai"]["api_key"] = openai_key

    click.echo(f"Starting audit of {options.url}")
    try:
        app_config = load_config().with_overrides(overrides)
        result = asyncio.run(start_audit(options, app_config))
    except Exception as exc:
        if debug or os.environ.get("DEBUG"):
            click.echo(traceback.format_exc(), err=True)
        print_error(f"Audit failed: {exc}")

    health = result.summary.get("overall_health", {})
    click.secho("Audit completed", fg="green")
    click.echo(f"Pages analyzed: {len(result.analyzed_pages)}/{len(result.pages)}")
    if health:
        click.echo(f"Overall health: {health.get('score')}/100 ({health.get('grade')})")
    click.echo(f"Reports: {options.output_dir}")


@cli.command("config", context_settings=CONTEXT_SETTINGS)
@click.option("--show", is_flag=True, help="Print the effective configuration")
@click.option("--set-provider", type=click.Choice(["ollama", "openai"]), default=None)
@click.option("--set-ollama-model", default=None)
@click.option("--set-ollama-host", default=None)
@click.option("--set-openai-key", default=None)
@click.option("--set-openai-model", default=None)
@click.option("--init-user", is_flag=True, help="Write the defaults to ~/.site-audit.yaml")
@click.option("--init-project", is_flag=True, help="Write the defaults to ./.site-audit.yaml")
def config_cmd(
    show, set_provider, set_ollama_model, set_ollama_host, set_openai_key, set_openai_model,
    init_user, init_project,
):
    """Show or update the AI configuration (changes go to the user config file)."""
    try:
        if init_user:
            path = save_config(AppConfig(), config_module.USER_CONFIG_PATH)
            click.echo(f"User configuration created: {path}")
        if init_project:
            path = save_config(AppConfig(), config_module.PROJECT_CONFIG_PATH)
            click.echo(f"Project configuration created: {path}")

        updates: Dict[str, Any] = {}
        if set_provider:
            updates.setdefault("ai", {})["provider"] = set_provider
        if set_ollama_model:
            updates.setdefault("ai", {}).setdefault("ollama", {})["model"] = set_ollama_model
        if set_ollama_host:
            updates.setdefault("ai", {}).setdefault("ollama", {})["host"] = set_ollama_host
        if set_openai_key:
            updates.setdefault("ai", {}).setdefault("openai", {})["api_key"] = set_openai_key
        if set_openai_model:
            updates.setdefault("ai", {}).setdefault("openai", {})["model"] = set_openai_model
        if updates:
            user_path = config_module.USER_CONFIG_PATH
            current = load_config([user_path], environ={})
            path = save_config(current.with_overrides(updates), user_path)
            click.echo(f"Configuration updated: {path}")

        if show or not (init_user or init_project or updates):
            data = load_config().model_dump(mode="json")
            data["ai"]["openai"]["api_key"] = mask_secret(data["ai"]["openai"]["api_key"])
            click.echo(yaml.safe_dump(data, sort_keys=False), nl=False)
    except (ValueError, TypeError, OSError) as exc:
        print_error(f"Configuration error: {exc}")


if __name__ == "__main__":
    cli()
