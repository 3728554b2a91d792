"""
dotacoach CLI Entry Point

Allows running the package as a module: python -m dotacoach
"""

from dotacoach.cli import app


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
