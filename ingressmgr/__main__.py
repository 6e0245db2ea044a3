"""Entry point for `python -m ingressmgr`.

Usage:
    python -m ingressmgr
"""

from __future__ import annotations

import asyncio

from ingressmgr.app import main

asyncio.run(main())
