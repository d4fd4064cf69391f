#!/usr/bin/env python3
"""
CLI Interface for the Story Discovery Engine

Command-line client for the discovery API: text search, nearby stories,
trending, discovery feed and autocomplete, rendered with rich.
"""

import json
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import click
import requests
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from discovery.tokenizer import highlight_spans


console = Console()

# API Configuration
DEFAULT_API_BASE = "http://localhost:8000"
DEFAULT_SIZE = 8
MATCH_STYLE = "bold black on yellow"


def format_timestamp(timestamp_str: str) -> str:
    """Format timestamp to relative time."""
    try:
        story_time = datetime.fromisoformat(timestamp_str.replace('Z', '+00:00'))
    except (AttributeError, ValueError):
        return "Unknown time"

    diff = datetime.now(story_time.tzinfo) - story_time
    if diff.days > 0:
        return f"{diff.days}d ago"
    elif diff.seconds > 3600:
        return f"{diff.seconds // 3600}h ago"
    elif diff.seconds > 60:
        return f"{diff.seconds // 60}m ago"
    else:
        return "Just now"


def format_count(count: int) -> str:
    """Format a counter with K/M suffix."""
    if count >= 1000000:
        return f"{count/1000000:.1f}M"
    elif count >= 1000:
        return f"{count/1000:.1f}K"
    else:
        return str(count)


def get_rank_emoji(rank: int) -> str:
    """Get emoji for result ranking."""
    rank_emojis = {1: "🥇", 2: "🥈", 3: "🥉"}
    return rank_emojis.get(rank, f"{rank}.")


def truncate_content(content: str, max_length: int = 100) -> str:
    """Truncate content while preserving words."""
    if len(content) <= max_length:
        return content

    truncated = content[:max_length]
    last_space = truncated.rfind(' ')
    if last_space > max_length * 0.8:  # Only truncate at word boundary if reasonably close
        truncated = truncated[:last_space]

    return truncated + "..."


def highlighted(text: str, query: Optional[str], style: str) -> Text:
    """Styled text with query term matches marked."""
    line = Text(text, style=style)
    for start, end in highlight_spans(text, query or ""):
        line.stylize(MATCH_STYLE, start, end)
    return line


def display_story(story: Dict[str, Any], rank: int, score: Optional[float] = None,
                  distance_km: Optional[float] = None, matched_by: Optional[List[str]] = None,
                  query: Optional[str] = None):
    """Display a single story in a compact format."""
    stats = story.get("stats", {})
    location = story.get("location") or {}
    tags = story.get("tags", [])

    header = Text()
    header.append(f"{get_rank_emoji(rank)} ", style="bold")
    header.append_text(highlighted(story.get("title") or "(untitled)", query, "bold white"))
    if score is not None:
        header.append(f"  Score: {score:.2f}", style="cyan")
    if distance_km is not None:
        header.append(f"  📍 {distance_km:.2f} km", style="magenta")
    if matched_by:
        header.append(f"  [{', '.join(matched_by)}]", style="dim cyan")
    console.print(header)

    body = Text()
    body.append("📝 ", style="bold blue")
    body.append_text(highlighted(truncate_content(story.get("content", ""), 100), query, "white"))
    if tags:
        body.append(" " + " ".join(f"#{tag}" for tag in tags[:5]), style="dim yellow")
    console.print(body)

    meta = Text()
    meta.append("👤 ", style="bold green")
    meta.append(story.get("author_name") or "unknown", style="bold green")
    if location.get("name"):
        meta.append(f" | 🌍 {location['name']}", style="magenta")
    meta.append(" | ❤️  ", style="bold red")
    meta.append(f"{format_count(stats.get('likes', 0))}", style="red")
    meta.append(f" | 💬 {format_count(stats.get('comments', 0))}", style="dim")
    meta.append(f" | 🕐 {format_timestamp(story.get('created_at', ''))}", style="dim")
    console.print(meta)
    console.print()


def call_api(method: str, path: str, api_base: str, description: str,
             params: Optional[Dict[str, Any]] = None,
             payload: Optional[Dict[str, Any]] = None) -> Optional[Any]:
    """Call the discovery API and return the decoded JSON body."""
    url = f"{api_base}{path}"

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(description=description, total=None)

            response = requests.request(method, url, params=params, json=payload, timeout=30)
            response.raise_for_status()

        return response.json()

    except requests.exceptions.ConnectionError:
        console.print(f"❌ Cannot connect to API at {api_base}", style="red")
        console.print("💡 Make sure the API server is running: python -m discovery_api.main --port 8000", style="yellow")
        return None
    except requests.exceptions.Timeout:
        console.print("⏱️  Request timed out", style="red")
        return None
    except requests.exceptions.RequestException as e:
        console.print(f"❌ API error: {e}", style="red")
        return None
    except json.JSONDecodeError:
        console.print("❌ Invalid JSON response from API", style="red")
        return None


def perform_search(query: str, api_base: str, size: int, sort_by: str):
    """Perform a single search and display results."""
    payload = {"query": query, "limit": size, "sort_by": sort_by}
    response = call_api("POST", "/search", api_base, f"🔍 Searching: '{query}'...", payload=payload)
    if not response:
        return

    items = response.get("items", [])
    header_text = f"📊 Found {response.get('total', 0)} stories in {response.get('search_time_ms', 0)}ms"
    console.print(header_text, style="bold green")
    if response.get("degraded"):
        console.print(f"⚠️  Degraded results, failed: {', '.join(response.get('failed_strategies', []))}", style="yellow")
    console.print(Rule(style="green"))
    console.print()

    if not items:
        console.print("🔍 No stories found. Try a different query.", style="yellow")
        console.print("💡 [bold]Suggestions:[/bold]", style="cyan")
        console.print("   • Try a place name or a #tag", style="dim")
        console.print("   • Use broader terms: 'beach' instead of a specific cove", style="dim")
        return

    for i, result in enumerate(items, 1):
        display_story(result["item"], i, score=result.get("relevance_score"),
                      matched_by=result.get("matched_by"), query=query)


@click.group()
@click.option("--api-base", default=DEFAULT_API_BASE, help=f"API base URL (default: {DEFAULT_API_BASE})")
@click.pass_context
def cli(ctx, api_base: str):
    """
    CLI for the Story Discovery Engine

    Examples:
        cli_search.py search "sunset santorini"
        cli_search.py nearby 36.46 25.37 --radius 5
        cli_search.py trending --timeframe 1d
        cli_search.py search --interactive
    """
    ctx.ensure_object(dict)
    ctx.obj["api_base"] = api_base


@cli.command()
@click.argument("query", required=False)
@click.option("--interactive", "-i", is_flag=True, help="Run in interactive mode")
@click.option("--size", "-s", default=DEFAULT_SIZE, help=f"Number of results to return (default: {DEFAULT_SIZE})")
@click.option("--sort", "sort_by", default="relevance",
              type=click.Choice(["relevance", "newest", "oldest", "popular", "trending"]))
@click.pass_context
def search(ctx, query: Optional[str], interactive: bool, size: int, sort_by: str):
    """Search stories by text."""
    api_base = ctx.obj["api_base"]

    console.print()
    console.print("🌍 [bold blue]Story Discovery CLI[/bold blue]", justify="center")
    console.print()

    if interactive:
        console.print("🔍 [bold green]Interactive Search Mode[/bold green]")
        console.print("💡 Type your queries. Press Ctrl+C or type 'quit' to exit.")
        console.print()

        try:
            while True:
                query = Prompt.ask("🔎 [bold cyan]Search query[/bold cyan]")

                if query.lower() in ['quit', 'exit', 'q']:
                    console.print("👋 Goodbye!", style="green")
                    break

                if not query.strip():
                    console.print("⚠️  Please enter a search query", style="yellow")
                    continue

                console.print()
                perform_search(query, api_base, size, sort_by)
                console.print()

        except KeyboardInterrupt:
            console.print("\n👋 Goodbye!", style="green")

    elif query:
        perform_search(query, api_base, size, sort_by)

    else:
        console.print("❌ Please provide a query or use --interactive mode", style="red")
        console.print("💡 Example: python cli_search.py search \"sunset santorini\"", style="yellow")
        sys.exit(1)


@cli.command()
@click.argument("lat", type=float)
@click.argument("lng", type=float)
@click.option("--radius", "-r", default=10.0, help="Radius in kilometers")
@click.option("--size", "-s", default=DEFAULT_SIZE, help="Maximum stories")
@click.pass_context
def nearby(ctx, lat: float, lng: float, radius: float, size: int):
    """Stories near a coordinate, nearest first."""
    params = {"lat": lat, "lng": lng, "radius_km": radius, "limit": size}
    results = call_api("GET", "/nearby", ctx.obj["api_base"], f"📍 Looking around ({lat}, {lng})...", params=params)
    if results is None:
        return

    console.print(f"📍 {len(results)} stories within {radius} km", style="bold green")
    console.print(Rule(style="green"))
    for i, result in enumerate(results, 1):
        display_story(result["item"], i, distance_km=result.get("distance_km"))


@cli.command()
@click.option("--timeframe", "-t", default="7d", type=click.Choice(["1d", "7d", "30d"]))
@click.option("--size", "-s", default=DEFAULT_SIZE, help="Maximum stories")
@click.pass_context
def trending(ctx, timeframe: str, size: int):
    """Trending stories."""
    params = {"timeframe": timeframe, "limit": size}
    stories = call_api("GET", "/trending", ctx.obj["api_base"], "🔥 Loading trending stories...", params=params)
    if stories is None:
        return

    console.print(f"🔥 Trending over {timeframe}", style="bold green")
    console.print(Rule(style="green"))
    for i, story in enumerate(stories, 1):
        display_story(story, i)


@cli.command()
@click.option("--user", "user_id", default=None, help="Requesting user id (own stories are excluded)")
@click.option("--tag", "tags", multiple=True, help="Preferred tag (repeatable)")
@click.option("--size", "-s", default=DEFAULT_SIZE, help="Maximum stories")
@click.pass_context
def discover(ctx, user_id: Optional[str], tags: List[str], size: int):
    """Personalized discovery feed."""
    payload = {"user_id": user_id, "preferences": {"tags": list(tags)}, "limit": size}
    stories = call_api("POST", "/discover", ctx.obj["api_base"], "✨ Building your feed...", payload=payload)
    if stories is None:
        return

    console.print("✨ Discover", style="bold green")
    console.print(Rule(style="green"))
    for i, story in enumerate(stories, 1):
        display_story(story, i)


@cli.command()
@click.argument("prefix")
@click.option("--size", "-s", default=5, help="Maximum suggestions")
@click.pass_context
def suggest(ctx, prefix: str, size: int):
    """Autocomplete suggestions for a prefix."""
    params = {"prefix": prefix, "limit": size}
    suggestions = call_api("GET", "/suggestions", ctx.obj["api_base"], "💡 Fetching suggestions...", params=params)
    if suggestions is None:
        return

    if not suggestions:
        console.print("No suggestions", style="yellow")
        return

    table = Table(title=f"Suggestions for '{prefix}'")
    table.add_column("#", style="dim", width=3)
    table.add_column("Suggestion", style="cyan")
    for i, suggestion in enumerate(suggestions, 1):
        table.add_row(str(i), suggestion)
    console.print(table)


@cli.command()
@click.option("--size", "-s", default=20, help="Maximum tags")
@click.pass_context
def tags(ctx, size: int):
    """Popular tags."""
    popular = call_api("GET", "/tags/popular", ctx.obj["api_base"], "🏷️  Loading tags...", params={"limit": size})
    if popular is None:
        return
    console.print(" ".join(f"#{tag}" for tag in popular), style="bold yellow")


if __name__ == "__main__":
    cli()
