"""Entry point for `python -m lopen_memory.cli` invocation.

This module enables running the CLI via:
    python -m lopen_memory.cli [command] [options]
"""


def main():
    """Run the CLI with proper program name."""
    from lopen_memory.cli.app import app

    app(prog_name="lopen-memory")


if __name__ == "__main__":
    main()
