from __future__ import annotations
from pydantic import BaseModel
from typing import Optional, Union


Primitive = Union[bool, int, float, str]


class ValueRequest(BaseModel):
    value: Optional[Primitive] = None
