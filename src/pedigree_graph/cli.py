"""CLI interface for pedigree-graph."""

import asyncio
import json
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .exceptions import PedigreeGraphError

app = typer.Typer(
    name="pedigree-graph",
    help="Browse family trees, notable relatives and the research queue",
    add_completion=False,
)
console = Console()


def get_settings():
    """Load settings from the environment (and .env)."""
    from .config import load_settings
    from .logging import configure_logging

    try:
        settings = load_settings()
    except ValidationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        raise typer.Exit(1)
    configure_logging(settings.log_level)
    return settings


def get_service(db: Path | None = None):
    """Build a service over the configured SQLite database."""
    from .service import FamilyTreeService
    from .store import SQLiteFamilyStore

    settings = get_settings()
    store = SQLiteFamilyStore(db or settings.db_path)
    return FamilyTreeService(store, settings)


def _run(coro):
    try:
        return asyncio.run(coro)
    except PedigreeGraphError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _label(person) -> str:
    years = f"{person.birth_year or '?'}-{person.death_year or ('' if person.living else '?')}"
    star = " [yellow]*[/yellow]" if person.is_notable else ""
    return f"[bold]{person.display_name}[/bold] [dim]({person.id}, {years})[/dim]{star}"


DbOption = typer.Option(None, "--db", help="SQLite database path (default: PEDIGREE_DB_PATH)")


@app.command("init-db")
def init_db(db: Path = DbOption):
    """Create the database schema."""
    from .store import SQLiteFamilyStore

    path = db or get_settings().db_path
    SQLiteFamilyStore(path)
    console.print(f"[green]Database ready at {path}[/green]")


@app.command()
def load(
    file_path: Path = typer.Argument(..., help="JSON file with people and families"),
    db: Path = DbOption,
):
    """Load people and families from a JSON file."""
    from .store import SQLiteFamilyStore, load_records

    if not file_path.exists():
        console.print(f"[red]Error: File not found: {file_path}[/red]")
        raise typer.Exit(1)

    store = SQLiteFamilyStore(db or get_settings().db_path)
    try:
        people, families = load_records(store, json.loads(file_path.read_text()))
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Error loading {file_path}: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Loaded {people} people and {families} families[/green]")


@app.command()
def ancestors(
    person_id: str = typer.Argument(..., help="Root person id"),
    generations: int = typer.Option(None, "--generations", "-g", help="Generations to include"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a tree"),
    db: Path = DbOption,
):
    """Show a person's ancestor tree."""
    service = get_service(db)
    tree = _run(service.ancestors(person_id, generations))
    if tree is None:
        console.print(f"[yellow]No person with id '{person_id}'[/yellow]")
        raise typer.Exit(1)
    if as_json:
        console.print_json(json.dumps(tree.to_dict()))
        return

    view = Tree(_label(tree.person))
    stack = [(tree, view)]
    while stack:
        node, branch = stack.pop()
        if node.has_more_ancestors and node.father is None and node.mother is None:
            branch.add("[dim]...[/dim]")
        for role, parent in (("F", node.father), ("M", node.mother)):
            if parent is not None:
                stack.append((parent, branch.add(f"{role}: {_label(parent.person)}")))
    console.print(view)


@app.command()
def descendants(
    person_id: str = typer.Argument(..., help="Root person id"),
    generations: int = typer.Option(None, "--generations", "-g", help="Generations to include"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a tree"),
    db: Path = DbOption,
):
    """Show a person's descendant tree."""
    service = get_service(db)
    tree = _run(service.descendants(person_id, generations))
    if tree is None:
        console.print(f"[yellow]No person with id '{person_id}'[/yellow]")
        raise typer.Exit(1)
    if as_json:
        console.print_json(json.dumps(tree.to_dict()))
        return

    def couple(node) -> str:
        text = _label(node.person)
        if node.spouse is not None:
            married = f" m. {node.marriage_year}" if node.marriage_year else ""
            text += f" + {_label(node.spouse)}{married}"
        return text

    view = Tree(couple(tree))
    stack = [(tree, view)]
    while stack:
        node, branch = stack.pop()
        if node.has_more_descendants and not node.children:
            branch.add("[dim]...[/dim]")
        for child in node.children:
            stack.append((child, branch.add(couple(child))))
    console.print(view)


@app.command()
def notables(
    person_id: str = typer.Argument(..., help="Root person id"),
    db: Path = DbOption,
):
    """List notable relatives through collateral lines."""
    service = get_service(db)
    relatives = _run(service.notable_relatives(person_id))
    if not relatives:
        console.print(f"[yellow]No notable relatives found for '{person_id}'[/yellow]")
        return

    table = Table(title=f"Notable relatives of {person_id}")
    table.add_column("Generation", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Description")
    for relative in relatives:
        table.add_row(
            str(relative.generation),
            relative.person.id,
            relative.person.display_name,
            relative.person.notable_description or "",
        )
    console.print(table)


@app.command()
def queue(
    first: int = typer.Option(None, "--first", "-n", help="Page size"),
    after: str = typer.Option(None, "--after", help="Cursor from a previous page"),
    db: Path = DbOption,
):
    """Show the research queue, highest score first."""
    service = get_service(db)
    page = _run(service.research_queue(first=first, after=after))

    table = Table(title="Research Queue")
    table.add_column("Score", justify="right")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Reasons")
    for edge in page.edges:
        entry = edge.node
        table.add_row(
            f"{entry.score:g}",
            entry.person.id,
            entry.person.display_name,
            ", ".join(entry.reasons),
        )
    console.print(table)
    _print_page_info(page.page_info)


@app.command()
def people(
    first: int = typer.Option(None, "--first", "-n", help="Forward page size"),
    after: str = typer.Option(None, "--after", help="Forward cursor"),
    last: int = typer.Option(None, "--last", help="Backward page size"),
    before: str = typer.Option(None, "--before", help="Backward cursor"),
    db: Path = DbOption,
):
    """List people ordered by id."""
    service = get_service(db)
    page = _run(service.people(first=first, after=after, last=last, before=before))

    table = Table(title="People")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Born")
    table.add_column("Died")
    for edge in page.edges:
        person = edge.node
        table.add_row(
            person.id,
            person.display_name,
            str(person.birth_year or ""),
            str(person.death_year or ""),
        )
    console.print(table)
    _print_page_info(page.page_info)


@app.command()
def search(
    query: str = typer.Argument(..., help='Name words to match by prefix, e.g. "rob smi"'),
    first: int = typer.Option(None, "--first", "-n", help="Page size"),
    after: str = typer.Option(None, "--after", help="Cursor from a previous page"),
    db: Path = DbOption,
):
    """Find people by name."""
    service = get_service(db)
    page = _run(service.search(query, first=first, after=after))

    if not page.edges:
        console.print(f"[yellow]No people match '{query}'[/yellow]")
        return

    table = Table(title=f"Search: {query}")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Born")
    for edge in page.edges:
        table.add_row(edge.node.id, edge.node.display_name, str(edge.node.birth_year or ""))
    console.print(table)
    _print_page_info(page.page_info)


@app.command()
def layout(
    person_id: str = typer.Argument(..., help="Root person id"),
    generations: int = typer.Option(None, "--generations", "-g", help="Generations each way"),
    siblings: bool = typer.Option(False, "--siblings", help="Show sibling panels"),
    output: Path = typer.Option(None, "--output", "-o", help="Write layout JSON to a file"),
    db: Path = DbOption,
):
    """Compute tree coordinates for a person."""
    service = get_service(db)

    async def run():
        tree = await service.family_tree(person_id, generations)
        if tree is None:
            return None
        from .layout import compute_layout

        visible = {tree.id} | ({tree.spouse.id} if tree.spouse else set()) if siblings else set()
        return compute_layout(tree, visible_siblings=visible)

    result = _run(run())
    if result is None:
        console.print(f"[yellow]No person with id '{person_id}'[/yellow]")
        raise typer.Exit(1)

    payload = json.dumps(result.to_dict(), indent=2)
    if output:
        output.write_text(payload)
        console.print(f"[green]Layout saved to {output}[/green]")
    else:
        console.print_json(payload)
    console.print(
        Panel(
            f"{len(result.nodes)} boxes, {len(result.panels)} sibling panels, "
            f"{result.bounds.width:g} x {result.bounds.height:g}",
            title="Layout",
        )
    )


@app.command("clear-cache")
def clear_cache(
    pattern: str = typer.Option(None, "--pattern", "-p", help="Only keys containing this text"),
):
    """Clear cached trees held by this process only.

    The cache lives in memory, so a fresh CLI process has nothing to clear.
    Services embedding pedigree-graph clear their own cache through
    FamilyTreeService.clear_cache.
    """
    from .cache import get_result_cache

    removed = get_result_cache().clear(pattern)
    console.print(f"[green]Removed {removed} cached entries[/green]")


def _print_page_info(info) -> None:
    console.print(
        f"[dim]total={info.total_count} "
        f"next={info.has_next_page} previous={info.has_previous_page} "
        f"start={info.start_cursor} end={info.end_cursor}[/dim]"
    )


if __name__ == "__main__":
    app()
