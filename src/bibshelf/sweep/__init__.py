"""Filesystem reconciler: sweeps broken links and empty directories."""

from bibshelf.sweep.sweeper import LinkSweeper, SweepPlan, SweepReport

__all__ = ["LinkSweeper", "SweepPlan", "SweepReport"]
