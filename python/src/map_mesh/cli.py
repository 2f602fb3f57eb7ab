"""CLI for map-mesh."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import Progress
from rich.table import Table

from map_mesh import ExportBatch, MeshReducer
from map_mesh.errors import MeshError
from map_mesh.io import load_manifest, load_mesh, save_combined, save_mesh
from map_mesh.models import CombineSettings, ReductionSettings, SemanticType

app = typer.Typer(
    name="mapmesh",
    help="Reduce and combine procedural map meshes",
    add_completion=False,
)
console = Console()

# Errors reported as a single line instead of a traceback.
USER_ERRORS = (MeshError, ValidationError, ValueError)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    raise typer.Exit(1)


@app.command()
def reduce(
    source: Path = typer.Argument(..., help="Source mesh file (JSON)"),
    semantic_type: SemanticType = typer.Option(SemanticType.GENERIC, "--type", "-t", help="Semantic type of the mesh"),
    factor: Optional[float] = typer.Option(None, "--factor", "-f", help="Target vertex factor (0-1) for edge collapse"),
    collapse: Optional[bool] = typer.Option(None, "--collapse/--no-collapse", help="Run the edge collapse loop"),
    floor_epsilon: Optional[float] = typer.Option(None, "--floor-epsilon", help="Height band stripped from floors"),
    skip_bad_faces: bool = typer.Option(False, "--skip-bad-faces", help="Keep degenerate wall faces instead of failing"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Reduce a single mesh."""
    setup_logging(verbose)
    if not source.exists():
        _fail(f"File not found: {source}")

    overrides = {}
    if factor is not None:
        overrides["target_factor"] = factor
    if collapse is not None:
        overrides["collapse_enabled"] = collapse
    if floor_epsilon is not None:
        overrides["floor_epsilon"] = floor_epsilon
    if skip_bad_faces:
        overrides["wall_face_policy"] = "skip"

    output_path = output or source.with_stem(f"{source.stem}_reduced")

    try:
        reducer = MeshReducer(ReductionSettings.from_env(), **overrides)
        with console.status("Reducing mesh..."):
            result = reducer.reduce(load_mesh(source), semantic_type)
        save_mesh(output_path, result.mesh)
    except USER_ERRORS as e:
        _fail(str(e))

    console.print("[green]✓ Reduced successfully[/green]")
    console.print(f"  Strategy: {result.strategy}")
    console.print(f"  Original: {result.original_vertices:,} vertices, {result.original_tris:,} triangles")
    console.print(
        f"  Final: {result.final_vertices:,} vertices, {result.final_tris:,} triangles "
        f"({result.reduction_ratio:.1%})"
    )
    console.print(f"  Output: {output_path}")


@app.command()
def analyze(
    source: Path = typer.Argument(..., help="Source mesh file (JSON)"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Analyze a single mesh."""
    setup_logging(verbose)
    if not source.exists():
        _fail(f"File not found: {source}")

    try:
        with console.status("Analyzing mesh..."):
            analysis = MeshReducer().analyze(load_mesh(source))
    except USER_ERRORS as e:
        _fail(str(e))

    table = Table(title=f"Analysis: {source.name}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value")

    table.add_row("Vertices", f"{analysis.vertex_count:,}")
    table.add_row("Unique Vertices", f"{analysis.unique_vertex_count:,}")
    table.add_row("Triangles", f"{analysis.triangle_count:,}")
    table.add_row("Skipped Triangles", f"{analysis.skipped_triangle_count:,}")
    table.add_row("Has Colors", "✓" if analysis.has_colors else "✗")
    table.add_row("Has UVs", "✓" if analysis.has_uvs else "✗")
    table.add_row("Size", " x ".join(f"{s:.2f}" for s in analysis.bounds_size))

    console.print(table)


@app.command()
def combine(
    manifest: Path = typer.Argument(..., help="Batch manifest (JSON)"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", "-o"),
    capacity: Optional[int] = typer.Option(None, "--capacity", "-c", help="Vertex capacity of a combined mesh"),
    partition: Optional[bool] = typer.Option(None, "--partition/--no-partition", help="Keep semantic types apart"),
    reduction: Optional[bool] = typer.Option(None, "--reduction/--no-reduction", help="Reduce meshes before combining"),
    flatten_water: Optional[bool] = typer.Option(None, "--flatten-water/--no-flatten-water"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
) -> None:
    """Reduce and combine all meshes of a tile."""
    setup_logging(verbose)
    if not manifest.exists():
        _fail(f"File not found: {manifest}")

    output_dir = output_dir or manifest.parent

    try:
        reduction_settings = ReductionSettings.from_env()
        combine_settings = CombineSettings.from_env()
        if reduction is not None:
            reduction_settings.reduction_enabled = reduction
        if capacity is not None:
            combine_settings.capacity = capacity
        if partition is not None:
            combine_settings.partition_by_type = partition
        if flatten_water is not None:
            combine_settings.flatten_water = flatten_water

        tile, sources = load_manifest(manifest)
        batch = ExportBatch(reduction_settings, combine_settings, tile=tile)

        with Progress(console=console) as progress:
            task = progress.add_task("Combining meshes...", total=None)

            def on_progress(current, total):
                progress.update(task, total=total, completed=current)

            result = batch.run(sources, on_progress=on_progress)

        output_dir.mkdir(parents=True, exist_ok=True)
        for combined in result.meshes:
            save_combined(output_dir / f"{combined.name}.json", combined)
    except USER_ERRORS as e:
        _fail(str(e))

    table = Table(title=f"Tile {tile[0]} {tile[1]}")
    table.add_column("Mesh", style="cyan")
    table.add_column("Type")
    table.add_column("Sources")
    table.add_column("Vertices")

    for combined in result.meshes:
        table.add_row(
            combined.name,
            combined.semantic_type.value,
            str(len(combined.sources)),
            f"{combined.vertex_count:,}",
        )

    console.print(table)
    console.print(
        f"  Vertices: {result.original_vertices:,} -> {result.final_vertices:,}, "
        f"wasted {result.wastage:,}"
    )
    if result.skipped:
        console.print(f"  Skipped {len(result.skipped)} info nodes")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
