from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List

from models.portfolio import Holding


class PlanRequest(BaseModel):
    goal: str = ""
    steps: List[Dict[str, Any]] = Field(default_factory=list)
    initial: Optional[Dict[str, Any]] = None
    userId: str = "default"


class AnalyzeRequest(BaseModel):
    portfolio: List[Holding] = Field(default_factory=list)
    userId: str = "default"


class RebalanceRequest(BaseModel):
    portfolio: List[Holding] = Field(default_factory=list)
    constraints: Optional[Dict[str, Any]] = None
    userId: str = "default"


class OpportunitiesRequest(BaseModel):
    symbols: List[str] = Field(default_factory=list)
    userId: str = "default"


class NewsRequest(BaseModel):
    symbols: List[str] = Field(default_factory=list)
    lookbackDays: int = Field(7, ge=1, le=90)
    userId: str = "default"
