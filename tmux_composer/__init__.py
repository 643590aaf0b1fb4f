"""tmux-composer - supervise interactive CLI coding agents inside tmux."""

__version__ = "0.1.13"
