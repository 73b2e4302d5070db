"""docvault command line interface (typer + rich)."""
