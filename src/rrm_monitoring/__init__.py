"""RRM monitoring: alert/response reconciliation and monthly indicator tables.

Cleans alert and response datasets, aggregates responses per alert, joins the
alert/evaluation/RRM/post-RRM tables and computes the monthly gap, coverage
and post-RRM positioning indicators.
"""

__version__ = "0.1.0"

from .errors import InvalidConfiguration, MissingColumn, RRMMonitoringError
