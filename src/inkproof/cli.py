"""inkproof command line.

Exit codes for ``inkproof verify``:
    0  VALID
    1  artifact could not be read (I/O or size limit)
    2  usage error (bad option or --key value)
    3  KEY_MISMATCH
    4  MALFORMED_ARTIFACT
    5  INCONSISTENT_MANIFEST
    6  INVALID_SIGNATURE
"""

from __future__ import annotations

import json
import logging
import sys
import traceback
from pathlib import Path

import click

from inkproof import __version__
from inkproof.attribution import AttributionClassifier, Category, ClassificationError, Span
from inkproof.config import InkproofConfig
from inkproof.provenance.artifact import render_artifact
from inkproof.provenance.events import EventLog, JsonlEventStore
from inkproof.provenance.manifest import build_manifest
from inkproof.provenance.signing import KeyStore, Signer, generate_keypair
from inkproof.provenance.verifier import EXIT_IO_ERROR, ArtifactVerifier
from inkproof.security import SecurityError


def handle_error(error: Exception, debug: bool) -> None:
    """Report an error and exit with status 1.

    Args:
        error: The exception that occurred
        debug: Whether to show full traceback
    """
    if debug:
        traceback.print_exc()
    else:
        click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def open_event_log(config: InkproofConfig, path: Path | None = None) -> EventLog:
    store = JsonlEventStore(path or config.event_log_path, retain_text=config.retain_text)
    return EventLog(store, background=config.background_writes, queue_size=config.queue_size)


def load_spans(path: Path) -> list[Span]:
    """Read a JSON list of ``{"text", "category", "source"}`` objects."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ClassificationError(f"{path}: expected a JSON list of spans")
    return [Span.from_dict(item) for item in data]


@click.group()
@click.version_option(version=__version__, prog_name="inkproof")
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, path_type=Path),
              help='YAML configuration file')
@click.option('--debug', is_flag=True, help='Enable debug logging and full tracebacks')
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, debug: bool):
    """inkproof - signed provenance for written documents."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj['debug'] = debug
    try:
        ctx.obj['config'] = InkproofConfig.load(config_path)
    except Exception as e:
        handle_error(e, debug)


@cli.command()
@click.option('--force', is_flag=True, help='Replace an existing key (old artifacts stay verifiable with the old public key)')
@click.pass_context
def keygen(ctx: click.Context, force: bool):
    """Generate the author signing key."""
    debug = ctx.obj.get('debug', False)
    config: InkproofConfig = ctx.obj['config']

    try:
        store = KeyStore(config.key_path)
        if store.exists() and not force:
            raise click.ClickException(f"Key already exists at {store.path}; use --force to replace it")
        if store.exists():
            click.echo("Warning: replacing existing signing key", err=True)

        keypair = generate_keypair()
        store.persist(keypair, overwrite=force)
        click.echo(f"Key written to: {store.path}")
        click.echo(f"Public key: {keypair.public_key_b64}")
        click.echo(f"Fingerprint: {keypair.fingerprint}")
    except click.ClickException:
        raise
    except Exception as e:
        handle_error(e, debug)


@cli.command()
@click.pass_context
def pubkey(ctx: click.Context):
    """Print the author public key (base64)."""
    debug = ctx.obj.get('debug', False)
    config: InkproofConfig = ctx.obj['config']

    try:
        with KeyStore(config.key_path).acquire() as keypair:
            click.echo(keypair.public_key_b64)
    except Exception as e:
        handle_error(e, debug)


@cli.command()
@click.option('--category', type=click.Choice([c.value for c in Category]), required=True)
@click.option('--source', '-s', default='user', help='"user", a model identifier, or a citation')
@click.option('--events', '-e', type=click.Path(path_type=Path), help='Event log (default from config)')
@click.argument('text')
@click.pass_context
def record(ctx: click.Context, category: str, source: str, events: Path | None, text: str):
    """Append one realized insertion to the event log."""
    debug = ctx.obj.get('debug', False)
    config: InkproofConfig = ctx.obj['config']

    try:
        log = open_event_log(config, events)
        sequence_id = log.append(category, source, text)
        log.close()
        if len(log.diagnostics):
            for entry in log.diagnostics.entries():
                click.echo(f"Warning: {entry['message']}", err=True)
            sys.exit(1)
        click.echo(f"Recorded event {sequence_id}")
    except Exception as e:
        handle_error(e, debug)


@cli.command(name="events")
@click.option('--events', '-e', type=click.Path(path_type=Path), help='Event log (default from config)')
@click.option('--category', type=click.Choice([c.value for c in Category]))
@click.option('--since', help='Only events after this UTC timestamp')
@click.option('--limit', type=int)
@click.option('--counts', is_flag=True, help='Show per-category counts only')
@click.pass_context
def list_events(
    ctx: click.Context,
    events: Path | None,
    category: str | None,
    since: str | None,
    limit: int | None,
    counts: bool,
):
    """List logged provenance events, oldest first."""
    debug = ctx.obj.get('debug', False)
    config: InkproofConfig = ctx.obj['config']

    try:
        log = open_event_log(config, events)
        if counts:
            click.echo(json.dumps(log.counts(), indent=2, sort_keys=True))
            return
        for event in log.list(since=since, category=category, limit=limit):
            click.echo(json.dumps(event.to_dict(), sort_keys=True, ensure_ascii=False))
    except Exception as e:
        handle_error(e, debug)


@cli.command()
@click.option('--spans', required=True, type=click.Path(exists=True, path_type=Path),
              help='JSON list of {text, category, source} spans')
@click.option('--events', '-e', required=True, type=click.Path(path_type=Path),
              help='Event log of this document only')
@click.option('--out', '-o', required=True, type=click.Path(path_type=Path), help='Output HTML artifact')
@click.option('--title', default='Untitled document')
@click.pass_context
def export(ctx: click.Context, spans: Path, events: Path, out: Path, title: str):
    """Sign a provenance manifest and write the HTML artifact.

    Every event in the --events log is embedded, so the log must hold the
    history of this document only.
    """
    debug = ctx.obj.get('debug', False)
    config: InkproofConfig = ctx.obj['config']

    try:
        document = load_spans(spans)
        stats = AttributionClassifier().classify(document)
        manifest = build_manifest(
            stats,
            open_event_log(config, events).list(),
            "".join(span.text for span in document),
        )

        signed = Signer.from_store(KeyStore(config.key_path)).sign(manifest)

        rendered = render_artifact(
            [(s.text, s.effective_category.value, s.effective_source) for s in document],
            signed.to_dict(),
            title=title,
        )
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(rendered, encoding="utf-8")

        click.echo(f"Provenance: {stats.summary()}")
        click.echo(f"Events: {len(manifest.events)}")
        click.echo(f"Artifact written to: {out}")
    except Exception as e:
        handle_error(e, debug)


@cli.command()
@click.argument('artifact', type=click.Path(path_type=Path))
@click.option('--key', '-k', help='Expected author public key (base64)')
@click.option('--report-dir', type=click.Path(path_type=Path), help='Write JSON and Markdown reports here')
@click.option('--json', 'as_json', is_flag=True, help='Print the result as JSON')
@click.pass_context
def verify(ctx: click.Context, artifact: Path, key: str | None, report_dir: Path | None, as_json: bool):
    """Verify a signed artifact. The exit code reflects the outcome."""
    config: InkproofConfig = ctx.obj['config']

    try:
        verifier = ArtifactVerifier(expected_public_key=key, tolerance=config.consistency_tolerance)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--key")

    try:
        result = verifier.verify(artifact)
    except (OSError, SecurityError) as e:
        click.echo(f"Error: cannot read artifact: {e}", err=True)
        sys.exit(EXIT_IO_ERROR)

    if report_dir:
        result.write_json(report_dir / "verification_report.json")
        result.write_markdown(report_dir / "verification_report.md")

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2, sort_keys=True, ensure_ascii=False))
    else:
        mark = "✅" if result.valid else "❌"
        click.echo(f"{mark} {result.status.value}: {result.message}")
        if result.public_key:
            click.echo(f"Public key: {result.public_key}")
        if result.manifest and result.valid:
            click.echo(
                f"human {result.manifest['human_pct']:.2f}% | "
                f"ai {result.manifest['ai_pct']:.2f}% | "
                f"cited {result.manifest['cited_pct']:.2f}%"
            )

    sys.exit(result.exit_code)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
