"""Atlas Data API MCP Tools Package.

Tool classes are grouped by the kind of operation they perform. Every method
returns a ToolResponse envelope and never raises.

Available Tool Classes:
    - DocumentTools: find, insert, update and delete documents
    - AggregationTools: aggregation pipelines plus count, distinct and group_by
    - ConnectionTools: connectivity probe
"""

from .aggregation_tools import AggregationTools
from .connection_tools import ConnectionTools
from .document_tools import DocumentTools

__all__ = [
    "AggregationTools",
    "ConnectionTools",
    "DocumentTools",
]
