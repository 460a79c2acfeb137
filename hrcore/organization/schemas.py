"""Directory Pydantic v2 schemas embedded in leave and routing responses."""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import BaseModel, ConfigDict


class EmployeeBrief(BaseModel):
    """Minimal employee info embedded in responses."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_code: str
    full_name: str
    department_id: Optional[uuid.UUID] = None
