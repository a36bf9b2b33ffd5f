"""StakeVue liquid-staking state resolution."""

from typing import NoReturn

from stakevue_state.config import EngineConfig
from stakevue_state.engine import StateEngine

__version__ = "0.1.0"

__all__ = ["EngineConfig", "StateEngine", "__version__"]


def _entry_point() -> NoReturn:
    """Entry point for the stakevue-state script."""
    import sys

    from stakevue_state.cli import main

    raise SystemExit(main(sys.argv[1:]))
