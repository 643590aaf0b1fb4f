"""Allow ``python -m tmux_composer``."""

from tmux_composer.cli.commands import app

if __name__ == "__main__":
    app()
