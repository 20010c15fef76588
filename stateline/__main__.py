"""Entry point for `python -m stateline`.

Usage:
    python -m stateline
    STATELINE_COMPANION_PORT=9000 python -m stateline
"""

from __future__ import annotations

import asyncio

from stateline.app import main

asyncio.run(main())
