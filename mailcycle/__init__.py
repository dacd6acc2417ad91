"""mailcycle - Monthly reimbursement mail cycle"""

from __future__ import annotations

__version__ = "0.1.0"


# Lazy imports so `import mailcycle` stays cheap (no Gmail/SQLite imports)
def __getattr__(name: str):
    """
    Lazy imports to avoid loading heavy dependencies when only importing lightweight modules.
    """
    if name == "CycleController":
        from mailcycle.cycle.controller import CycleController

        return CycleController

    if name == "build_controller":
        from mailcycle.runtime import build_controller

        return build_controller

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)


__all__ = [
    "CycleController",
    "build_controller",
]
