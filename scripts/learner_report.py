# ABOUTME: Provides a CLI that segments learners from CSV exports of a course platform.
# ABOUTME: Prints segment, easing, and module summaries and writes parquet result tables.

import json
import logging
from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.common.columns import validate_table
from src.common.config import SegmentationConfig, load_config
from src.common.normalization import LearnerIndex, normalize_learners
from src.segmentation.easing import EASING_LABELS, process_dynamics
from src.segmentation.export import export_results, group_modules_to_frame, modules_to_frame
from src.segmentation.modules import process_group_module_analytics, process_module_analytics
from src.segmentation.performance import process_performance, segment_distribution

console = Console()
app = typer.Typer(help="Segment learners by performance and activity shape from CSV exports.")


def read_rows(path: Path) -> List[Dict[str, str]]:
    """Load a CSV export as row dicts with every cell kept as text."""

    if not path.read_text(encoding="utf-8").strip():
        return []
    frame = pd.read_csv(path, dtype=str, keep_default_na=False, skipinitialspace=True, skip_blank_lines=True)
    return frame.to_dict(orient="records")


def _load_table(path: Optional[Path], table: str, required: bool = True) -> List[Dict[str, str]]:
    if path is None:
        return []
    if not path.exists():
        if required:
            console.print(f"[red]Missing {table} file at {path}[/red]")
            raise typer.Exit(code=1)
        console.print(f"[yellow]Skipping missing {table} file at {path}[/yellow]")
        return []
    rows = read_rows(path)
    validation = validate_table(rows, table)
    if not validation.valid:
        console.print(f"[yellow]{path.name}: missing columns {', '.join(validation.missing)}[/yellow]")
    return rows


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


def _resolve_config(config: Optional[Path], exclude: List[str], no_meetings: bool) -> SegmentationConfig:
    try:
        settings = load_config(config) if config else SegmentationConfig()
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--config") from exc
    if no_meetings:
        settings = replace(settings, use_meetings=False, include_meetings=False)
    return settings.with_exclusions(exclude)


def _write_frame(frame: pd.DataFrame, output: Optional[Path]) -> None:
    if output is None:
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    frame.to_parquet(output, index=False, engine="pyarrow")
    console.print(f"[green]Wrote {len(frame)} rows[/green] → {output}")


def _load_module_names(path: Optional[Path]) -> Dict[str, str]:
    if path is None:
        return {}
    if not path.exists():
        console.print(f"[red]Missing module names file at {path}[/red]")
        raise typer.Exit(code=1)
    return {str(k): str(v) for k, v in json.loads(path.read_text(encoding="utf-8")).items()}


@app.command()
def segment(
    grades: Path = typer.Option(..., "--grades", help="Grade book CSV (user id + total)."),
    learners: Path = typer.Option(..., "--learners", help="Learner roster CSV (user id + names)."),
    submissions: Path = typer.Option(..., "--submissions", help="Submission log CSV."),
    meetings: Optional[Path] = typer.Option(None, "--meetings", help="Meeting attendance CSV with [DD.MM.YYYY] columns."),
    config: Optional[Path] = typer.Option(None, "--config", help="Segmentation config YAML."),
    exclude: List[str] = typer.Option([], "--exclude", help="User id to leave out; repeatable."),
    no_meetings: bool = typer.Option(False, "--no-meetings", help="Ignore meetings in segments and curves."),
    output_dir: Path = typer.Option(Path("reports"), "--output-dir", help="Directory for parquet outputs."),
    verbose: bool = typer.Option(False, "--verbose", help="Log processing details."),
) -> None:
    """
    Run performance segmentation and activity easing over the same learner set.
    """
    _configure_logging(verbose)
    settings = _resolve_config(config, exclude, no_meetings)

    grade_rows = _load_table(grades, "grade_book")
    learner_rows = _load_table(learners, "learners")
    submission_rows = _load_table(submissions, "submissions")
    meeting_rows = _load_table(meetings, "meetings", required=False)

    performance = process_performance(
        grades=grade_rows,
        learners=learner_rows,
        submissions=submission_rows,
        meetings=meeting_rows,
        excluded_user_ids=settings.excluded_user_ids,
        use_meetings=settings.use_meetings,
    )
    dynamics = process_dynamics(
        grades=grade_rows,
        learners=learner_rows,
        submissions=submission_rows,
        meetings=meeting_rows,
        excluded_user_ids=settings.excluded_user_ids,
        include_meetings=settings.include_meetings,
        alpha=settings.alpha,
        beta=settings.beta,
    )

    console.rule("[bold blue]Learner Segmentation[/bold blue]")
    console.print(f"[bold]Learners:[/] {len(performance)}")

    segment_table = Table(show_header=True, header_style="bold magenta")
    segment_table.add_column("Segment")
    segment_table.add_column("Learners")
    for label, count in segment_distribution(performance).items():
        segment_table.add_row(label, str(count))
    console.print(segment_table)

    easing_counts = Counter(row.easing_label for row in dynamics.summary)
    easing_table = Table(show_header=True, header_style="bold magenta")
    easing_table.add_column("Easing")
    easing_table.add_column("Learners")
    for label in EASING_LABELS:
        if easing_counts[label]:
            easing_table.add_row(label, str(easing_counts[label]))
    console.print(easing_table)

    written = export_results(output_dir, performance=performance, dynamics=dynamics)
    for name, path in written.items():
        console.print(f"[green]{name}[/green] → {path}")


@app.command()
def modules(
    user_id: str = typer.Option(..., "--user-id", help="Learner to analyze."),
    submissions: Path = typer.Option(..., "--submissions", help="Submission log CSV."),
    structure: Path = typer.Option(..., "--structure", help="Course structure CSV (step → module)."),
    meetings: Optional[Path] = typer.Option(None, "--meetings", help="Meeting attendance CSV."),
    module_names: Optional[Path] = typer.Option(None, "--module-names", help="JSON object of module id → title."),
    output: Optional[Path] = typer.Option(None, "--output", help="Parquet file for the module table."),
) -> None:
    """
    Show per-module completion and success for one learner.
    """
    stats = process_module_analytics(
        user_id=user_id,
        submissions=_load_table(submissions, "submissions"),
        structure=_load_table(structure, "structure"),
        module_names=_load_module_names(module_names),
        meetings=_load_table(meetings, "meetings", required=False),
    )
    if not stats:
        console.print(f"[yellow]No module activity for {user_id}[/yellow]")
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("Module", "Steps", "Completed", "Completion", "Success", "Attempts/step", "Meetings", "Period"):
        table.add_column(column)
    for row in stats:
        period = f"{row.first_activity_date} – {row.last_activity_date}" if row.first_activity_date else "-"
        table.add_row(
            row.module_name,
            str(row.total_steps),
            str(row.completed_steps),
            f"{row.completion_rate:.1f}%",
            f"{row.success_rate:.1f}%",
            f"{row.avg_attempts_per_step:.1f}",
            str(row.meetings_attended),
            period,
        )
    console.print(table)
    _write_frame(modules_to_frame(stats), output)


@app.command("group-modules")
def group_modules(
    learners: Path = typer.Option(..., "--learners", help="Learner roster CSV defining the group."),
    submissions: Path = typer.Option(..., "--submissions", help="Submission log CSV."),
    structure: Path = typer.Option(..., "--structure", help="Course structure CSV (step → module)."),
    meetings: Optional[Path] = typer.Option(None, "--meetings", help="Meeting attendance CSV."),
    module_names: Optional[Path] = typer.Option(None, "--module-names", help="JSON object of module id → title."),
    exclude: List[str] = typer.Option([], "--exclude", help="User id to leave out; repeatable."),
    output: Optional[Path] = typer.Option(None, "--output", help="Parquet file for the averaged module table."),
) -> None:
    """
    Average module statistics over every learner in the roster.
    """
    roster = _load_table(learners, "learners")
    index = LearnerIndex(exclude)
    user_ids: Dict[str, None] = {}
    for record in normalize_learners(roster):
        canonical = index.resolve(record.user_id)
        if canonical:
            user_ids.setdefault(canonical)
    stats = process_group_module_analytics(
        user_ids=user_ids,
        submissions=_load_table(submissions, "submissions"),
        structure=_load_table(structure, "structure"),
        module_names=_load_module_names(module_names),
        meetings=_load_table(meetings, "meetings", required=False),
    )

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("Module", "Learners", "Avg completion", "Avg success", "Avg attempts/step", "Avg meetings"):
        table.add_column(column)
    for row in stats:
        table.add_row(
            row.module_name,
            str(row.students),
            f"{row.avg_completion_rate:.1f}%",
            f"{row.avg_success_rate:.1f}%",
            f"{row.avg_attempts_per_step:.1f}",
            f"{row.avg_meetings_attended:.1f}",
        )
    console.print(table)
    _write_frame(group_modules_to_frame(stats), output)


if __name__ == "__main__":
    app()
