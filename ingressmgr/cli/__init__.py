"""ingress-manager command-line interface.

Exposes:
    cli -- Click group entry point (registered as ``ingressmgr`` script).
"""

from ingressmgr.cli.main import cli

__all__ = ["cli"]
