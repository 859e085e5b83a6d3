from __future__ import annotations

from typing import Iterable, Optional, Tuple


class RRMMonitoringError(Exception):
    """Base error for the RRM monitoring pipeline."""


class InvalidConfiguration(RRMMonitoringError, ValueError):
    """A caller-supplied parameter is structurally invalid."""


class MissingColumn(InvalidConfiguration, KeyError):
    """One or more referenced columns do not exist in the supplied table."""

    def __init__(self, columns: Iterable[str], stage: Optional[str] = None):
        self.columns: Tuple[str, ...] = tuple(columns)
        self.stage = stage
        where = f" ({stage})" if stage else ""
        super().__init__(f"Missing column(s){where}: {', '.join(self.columns)}")

    def __str__(self) -> str:
        # KeyError quotes its message otherwise
        return self.args[0]
