"""Command-line interface for sortbox."""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.prompt import Confirm
from rich.table import Table

from . import __version__, db
from .config import Config, get_config_dir
from .errors import ErrorCode, SortboxError, ValidationError, safe_truncate
from .logging import set_item_context, setup_logging
from .models import ClassifiableItem, FeedbackRecord
from .state import load_classifier, save_state

console = Console()


def _fail(error: SortboxError) -> None:
    console.print(f"[red]{escape(error.message)}[/red]")
    if error.details:
        console.print(f"[dim]{escape(str(error))}[/dim]")
    sys.exit(1)


def _load_config() -> Config:
    try:
        return Config.load()
    except SortboxError as e:
        _fail(e)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON")
def main(verbose: bool, json_logs: bool):
    """sortbox - suggests mail folders and learns from your corrections."""
    config = _load_config()
    setup_logging(
        verbose=verbose,
        json_format=json_logs or config.logging.json_format,
        log_to_file=config.logging.log_to_file,
    )


@main.command()
@click.argument("subject")
@click.option("--body", default="", help="Message body")
@click.option("--sender", default="", help="Sender address")
@click.option("--bucket", "-b", "buckets", multiple=True, help="Candidate folder (repeatable)")
@click.option("--id", "item_id", default=None, help="Message ID for logs")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def classify(
    subject: str,
    body: str,
    sender: str,
    buckets: tuple[str, ...],
    item_id: str | None,
    as_json: bool,
):
    """Suggest a folder for a message.

    Example: sortbox classify "Ihre Rechnung" --sender billing@amazon.de -b Finanzen -b Arbeit
    """
    config = _load_config()
    candidates = list(buckets) or config.buckets
    set_item_context(item_id)

    try:
        classifier = load_classifier(config)
        item = ClassifiableItem(subject=subject, body=body, sender_address=sender)
        result = classifier.classify(item, candidates, item_id=item_id)
    except SortboxError as e:
        _fail(e)

    if as_json:
        data = result.to_dict()
        data["auto_move"] = config.should_auto_move(result)
        click.echo(json.dumps(data, indent=2))
        return

    console.print(
        f"\n[bold]{result.suggested_bucket}[/bold] ({result.confidence:.0%} confident)"
    )
    console.print(f"  Reason: {result.reason}")
    for alt in result.alternatives:
        console.print(f"  [dim]Alternative: {alt.bucket} ({alt.confidence:.0%})[/dim]")

    if config.should_auto_move(result):
        console.print("[green]✓ Confident enough to move automatically[/green]")
    else:
        console.print("[yellow]Below auto-move threshold, confirm manually[/yellow]")


@main.command()
@click.argument("subject")
@click.argument("bucket")
@click.option("--body", default="", help="Message body")
@click.option("--sender", default="", help="Sender address")
@click.option("--id", "item_id", default=None, help="Message ID for logs")
def feedback(subject: str, bucket: str, body: str, sender: str, item_id: str | None):
    """Teach sortbox which folder a message belongs in.

    Example: sortbox feedback "Milestone review" Projects --sender alice@acme.io
    """
    config = _load_config()
    set_item_context(item_id)
    try:
        classifier = load_classifier(config)
    except SortboxError as e:
        _fail(e)

    item = ClassifiableItem(subject=subject, body=body, sender_address=sender)
    outcome = classifier.record_feedback(item, bucket, item_id=item_id)
    save_state(classifier)

    console.print(f"[green]✓ {outcome.message}[/green]")
    for name in outcome.created_rules:
        console.print(f"  New rule learned for [bold]{name}[/bold]")


@main.command()
def rules():
    """List all active folder rules."""
    config = _load_config()
    try:
        classifier = load_classifier(config)
    except SortboxError as e:
        _fail(e)

    table = Table(show_header=True)
    table.add_column("Folder")
    table.add_column("Keywords")
    table.add_column("Domains")
    table.add_column("Senders")
    table.add_column("Priority", justify="right")
    table.add_column("Source")

    for rule in classifier.get_rules():
        table.add_row(
            rule.bucket_name,
            safe_truncate(", ".join(rule.keywords), 40),
            safe_truncate(", ".join(rule.known_domains), 30),
            safe_truncate(", ".join(rule.known_senders), 30),
            str(rule.priority),
            rule.source,
        )

    console.print(table)


@main.command()
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write to file"
)
def export(output: Path | None):
    """Export rules and feedback as JSON."""
    config = _load_config()
    try:
        classifier = load_classifier(config)
    except SortboxError as e:
        _fail(e)

    data = {
        "version": __version__,
        "rules": [rule.to_dict() for rule in classifier.get_rules()],
        "feedback": [record.to_dict() for record in classifier.get_feedback()],
    }
    text = json.dumps(data, indent=2, ensure_ascii=False)

    if output:
        output.write_text(text, encoding="utf-8")
        console.print(
            f"[green]✓ Exported {len(data['feedback'])} feedback records to {output}[/green]"
        )
    else:
        click.echo(text)


def _parse_feedback_file(path: Path) -> list[FeedbackRecord]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(
            code=ErrorCode.IMPORT_INVALID,
            message="Import file is not valid JSON",
            details={"path": str(path)},
            cause=e,
        ) from e

    entries = data.get("feedback", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValidationError(
            code=ErrorCode.IMPORT_INVALID,
            message="Import file must contain a list of feedback records",
            details={"path": str(path)},
        )

    records = []
    for index, entry in enumerate(entries):
        try:
            records.append(FeedbackRecord.from_dict(entry))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValidationError(
                code=ErrorCode.IMPORT_INVALID,
                message="Invalid feedback record in import file",
                details={"path": str(path), "index": index},
                cause=e,
            ) from e
    return records


@main.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def import_cmd(path: Path):
    """Import feedback records from an export file."""
    config = _load_config()
    try:
        records = _parse_feedback_file(path)
        classifier = load_classifier(config)
    except SortboxError as e:
        _fail(e)

    outcome = classifier.import_feedback(records)
    save_state(classifier)
    console.print(f"[green]✓ {outcome.message}[/green]")


@main.command()
def status():
    """Show what sortbox has learned so far."""
    config = _load_config()
    db.init_db()
    stats = db.get_stats()

    console.print("\n[bold]sortbox Status[/bold]")
    console.print("=" * 40)
    console.print(f"\nConfig dir: {get_config_dir()}")
    console.print(f"Rules file: {config.rules_file or 'built-in defaults'}")
    console.print(f"Default folders: {', '.join(config.buckets) or 'none'}")
    console.print(f"Auto-move confidence: {config.auto_move_confidence:.0%}")

    console.print("\n[bold]Learning[/bold]")
    console.print(f"  Feedback records: {stats['feedback_records']}")
    console.print(f"  Folders with feedback: {stats['feedback_buckets']}")
    console.print(f"  Stored rules: {stats['rules']} ({stats['derived_rules']} learned)")
    if stats["last_feedback"]:
        console.print(f"  Last feedback: {stats['last_feedback'][:19]}")
    console.print()


@main.command()
@click.option("--yes", is_flag=True, help="Skip confirmation")
def reset(yes: bool):
    """Forget all feedback and learned rules."""
    if not yes and not Confirm.ask("Delete all feedback and rules?", default=False):
        console.print("Cancelled.")
        return

    db.init_db()
    db.clear()
    console.print("[green]✓ All feedback and rules deleted[/green]")


if __name__ == "__main__":
    main()
