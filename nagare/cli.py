"""Command-line entry point: ``nagare fetch URL``."""

from __future__ import annotations

import logging

import click

from .connection import HTTPTransport
from .content_logging import DEFAULT_CONTENT_LOGGING_LIMIT
from .errors import HTTPResponseError, NagareError
from .request import Request


def _parse_header(value: str) -> tuple[str, str]:
    name, sep, rest = value.partition(":")
    if not sep or not name.strip():
        raise click.BadParameter(f"expected 'Name: value', got {value!r}")
    return name.strip(), rest.strip()


@click.group()
def main() -> None:
    """Inspect HTTP responses."""


@main.command()
@click.argument("url")
@click.option("-X", "--method", default="GET", show_default=True)
@click.option("-H", "--header", "headers", multiple=True, help="Extra header, 'Name: value'.")
@click.option("-d", "--data", default=None, help="Request body.")
@click.option("-o", "--output", type=click.File("wb"), default=None, help="Write content to a file.")
@click.option("--raise/--no-raise", "raise_on_error", default=True, show_default=True,
              help="Fail on non-2xx status.")
@click.option("--log-content", is_flag=True, help="Log request/response lines and content.")
@click.option("--limit", type=click.IntRange(min=0), default=DEFAULT_CONTENT_LOGGING_LIMIT,
              show_default=True, help="Content bytes to log.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=10.0, show_default=True)
@click.option("--insecure", is_flag=True, help="Skip TLS certificate verification.")
def fetch(url, method, headers, data, output, raise_on_error, log_content, limit, timeout, insecure):
    """Fetch URL and print its decoded content."""
    if log_content:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    request = Request(
        HTTPTransport(timeout=timeout, verify=not insecure),
        method,
        url,
        headers=dict(_parse_header(h) for h in headers),
        data=data,
        logging_enabled=log_content,
        content_logging_limit=limit,
        raise_on_error_status=raise_on_error,
    )
    try:
        response = request.execute()
    except HTTPResponseError as exc:
        click.secho(f"HTTP {exc}", fg="red", err=True)
        raise SystemExit(1) from exc
    except NagareError as exc:
        click.secho(f"Request failed: {exc}", fg="red", err=True)
        raise SystemExit(2) from exc

    color = "green" if response.is_success else "yellow"
    click.secho(f"{response.status_code} {response.status_message or ''}".rstrip(), fg=color, err=True)
    with response:
        try:
            if output is not None:
                written = response.download(output)
                click.secho(f"Wrote {written} bytes", err=True)
            else:
                text = response.parse_as_string()
                if text:
                    click.echo(text)
        except NagareError as exc:
            click.secho(f"Reading content failed: {exc}", fg="red", err=True)
            raise SystemExit(2) from exc
