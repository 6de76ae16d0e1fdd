"""P2M merchant command-line interface."""
