"""Вкладки кассы (столы, терраса и т.п.)."""
from typing import List, Optional

from pydantic import BaseModel


class PosTab(BaseModel):
    label: Optional[str] = None
    color: Optional[str] = None


class PosTabGroup(BaseModel):
    name: str
    tabs: List[PosTab] = []


class PosTabResponse(PosTab):
    slug: str


class PosTabGroupResponse(BaseModel):
    name: str
    tabs: List[PosTabResponse]
