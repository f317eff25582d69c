"""VEX IR rendering for single instructions (optional, requires pyvex/archinfo)."""

from __future__ import annotations

from revlift.utils.logging import get_logger

log = get_logger(__name__)


def lift_instruction(
    raw: bytes, address: int, arch_name: str = "AMD64", little_endian: bool = True
) -> str:
    """Lift one instruction's bytes to VEX statements.

    Returns an empty string when pyvex is not installed or the
    architecture has no VEX equivalent.
    """
    if not arch_name or not raw:
        return ""
    try:
        import archinfo
        import pyvex
    except ImportError:
        log.debug("pyvex_not_available")
        return ""

    arch_cls = getattr(archinfo, f"Arch{arch_name}", None)
    if arch_cls is None:
        return ""
    endness = archinfo.Endness.LE if little_endian else archinfo.Endness.BE
    try:
        irsb = pyvex.lift(raw, address, arch_cls(endness), max_inst=1)
    except pyvex.PyVEXError as exc:
        log.debug("vex_lift_failed", address=address, error=str(exc))
        return ""
    return "\n".join(str(stmt) for stmt in irsb.statements)
