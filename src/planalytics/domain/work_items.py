"""
Work item and dependency graph schemas.
"""

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WorkItem(BaseModel):
    """A backlog item as supplied by the caller. Never mutated by the engine."""

    id: str = Field(..., min_length=1)
    title: str = ""
    description: str = ""
    points: Optional[float] = Field(None, ge=0)
    priority: Optional[Priority] = None
    labels: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list, description="Ids of items this one depends on")

    model_config = ConfigDict(frozen=True)


class DependencyEdge(BaseModel):
    """Directed edge `from_id -> to_id`: `to_id` depends on `from_id`."""

    from_id: str
    to_id: str
    type: Literal["depends_on"] = "depends_on"
    confidence: float = Field(1.0, ge=0.0, le=1.0)
    reasoning: str = ""
    is_implicit: bool = False

    model_config = ConfigDict(frozen=True)


class GraphAnalysis(BaseModel):
    execution_order: List[str]
    critical_path: List[str]
    parallel_groups: List[List[str]]
    cycles: List[List[str]]
    orphan_tasks: List[str]
    leaf_tasks: List[str]
