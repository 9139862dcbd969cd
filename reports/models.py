"""Report service models.

The report service is opaque to the sync layer; these models only give its
responses names. Field aliases follow the service's Portuguese JSON.
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class HistoryEntityType(str, Enum):
    """Entities the history endpoint accepts."""
    BATCH = "lote"
    CAGE = "gaiola"


class ReportChart(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    chart_type: str = Field(default="line", alias="chartType")
    title: str = ""
    data: List[Any] = Field(default_factory=list)
    insight: str = ""
    alert: bool = False


class Report(BaseModel):
    """Analysis report generated by the service."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    date: Optional[str] = Field(default=None, alias="data")
    charts: List[ReportChart] = Field(default_factory=list, alias="graficos")
    insights: List[str] = Field(default_factory=list)
    alerts: List[Any] = Field(default_factory=list, alias="alertas")
