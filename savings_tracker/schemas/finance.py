from __future__ import annotations

from typing import Optional

from pydantic import Field

from .base import CamelModel


class SettingsOut(CamelModel):
    currency: str
    locale: str
    current_rate_pct: float
    apy_pct: float
    inflation_pct: float


class SettingsUpdate(CamelModel):
    currency: Optional[str] = None
    locale: Optional[str] = None
    current_rate_pct: Optional[float] = None
    apy_pct: Optional[float] = None
    inflation_pct: Optional[float] = None


class GoalIn(CamelModel):
    id: Optional[str] = None
    name: str = Field(min_length=1)
    target: float = Field(ge=0)
    deadline: Optional[str] = None
    owner: Optional[str] = None
    priority: Optional[int] = None


class GoalUpdate(CamelModel):
    id: str
    name: Optional[str] = None
    target: Optional[float] = Field(default=None, ge=0)
    deadline: Optional[str] = None
    owner: Optional[str] = None
    priority: Optional[int] = None


class GoalOut(CamelModel):
    id: str
    name: str
    target: float
    deadline: Optional[str] = None
    owner: str
    priority: int
