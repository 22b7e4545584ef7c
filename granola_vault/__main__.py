"""Main entry point for the granola-vault CLI."""

from granola_vault.cli import main

if __name__ == "__main__":
    main()
