"""Command-line interface for the link preview and reader scraper."""

import asyncio
import json
import sys
from typing import Optional

from linkscrape.config import ScraperConfig
from linkscrape.logging_config import setup_logging
from linkscrape.scraper import create_scraper_service


async def _run(command: str, urls: list[str], config: ScraperConfig) -> list[dict]:
    """Scrape each URL with the given entry point.

    Args:
        command: "preview" or "reader"
        urls: URLs to scrape
        config: Scraper configuration

    Returns:
        One result dictionary per URL, in input order
    """
    async with create_scraper_service(config) as scraper:
        if command == "preview":
            results = await asyncio.gather(*(scraper.get_preview(url) for url in urls))
        else:
            results = await asyncio.gather(*(scraper.get_reader_content(url) for url in urls))

    return [{"url": url, **result.to_dict()} for url, result in zip(urls, results)]


def print_preview(entry: dict):
    """Print a preview result in a readable way."""
    print(f"\n{'=' * 60}")
    print(f"Preview for: {entry['url']}")
    print(f"{'=' * 60}")
    print(f"  Status: {entry['status']}")
    if entry.get("error"):
        print(f"  Error: {entry['error']} ({entry.get('error_kind')})")
    print(f"  Title: {entry['title']}")
    print(f"  Description: {entry['description']}")
    print(f"  Image: {entry['image']}")
    print(f"  Favicon: {entry['favicon']}")


def print_article(entry: dict):
    """Print a reader result in a readable way."""
    print(f"\n{'=' * 60}")
    print(f"Reader view for: {entry['url']}")
    print(f"{'=' * 60}")
    print(f"  Status: {entry['status']}")
    if entry.get("error"):
        print(f"  Error: {entry['error']} ({entry.get('error_kind')})")
        return
    print(f"  Title: {entry['title']}")
    if entry.get("byline"):
        print(f"  By: {entry['byline']}")
    if entry.get("site_name"):
        print(f"  Site: {entry['site_name']}")
    print()
    print(entry["text_content"])


def scrape_command(args):
    """Handle the preview and reader commands."""
    config = args.config
    if args.concurrency:
        config.concurrency = args.concurrency
    if args.headed:
        config.headless = False

    entries = asyncio.run(_run(args.command, args.urls, config))

    if args.output == "json":
        output = json.dumps(entries, indent=2, default=str)
        if args.output_file:
            with open(args.output_file, "w") as f:
                f.write(output)
            print(f"Results written to {args.output_file}")
        else:
            print(output)
    else:
        printer = print_preview if args.command == "preview" else print_article
        for entry in entries:
            printer(entry)

    if all(entry["status"] != "success" for entry in entries):
        sys.exit(1)


def main(argv: Optional[list[str]] = None):
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="linkscrape - Link previews and readable article content"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Set logging verbosity (default: LOG_LEVEL from the environment, else INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (
        ("preview", "Fetch link preview metadata for one or more URLs."),
        ("reader", "Fetch the readable article content of one or more URLs."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("urls", nargs="+", help="URLs to scrape (one or more)")
        sub.add_argument(
            "--output",
            "-o",
            choices=["text", "json"],
            default="json",
            help="Output format (default: json)",
        )
        sub.add_argument(
            "--output-file",
            "-f",
            help="Write output to file (only for json format)",
        )
        sub.add_argument(
            "--concurrency",
            type=int,
            help="Maximum rendered scrapes at once (default: from environment)",
        )
        sub.add_argument(
            "--headed",
            action="store_true",
            help="Show the browser window",
        )
        sub.set_defaults(func=scrape_command)

    args = parser.parse_args(argv)

    args.config = ScraperConfig.from_env()

    # Flag wins over LOG_LEVEL
    setup_logging(
        level=args.log_level or args.config.log_level,
        log_file=getattr(args, "log_file", None),
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
