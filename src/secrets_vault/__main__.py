"""Permite executar a CLI com ``python -m secrets_vault``."""

import sys

from .cli import main

sys.exit(main())
