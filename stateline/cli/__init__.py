"""stateline command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``stateline`` script).
"""

from stateline.cli.main import cli

__all__ = ["cli"]
