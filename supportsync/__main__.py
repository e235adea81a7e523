"""Main entry point for supportsync CLI."""

from supportsync.cli.click_app import cli


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
