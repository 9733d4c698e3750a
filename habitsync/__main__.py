from __future__ import annotations

from .cli_app import main

main()
