# backend/mlcatalog/schemas/caller.py
from typing import List, Optional
from pydantic import BaseModel


class Caller(BaseModel):
    """The identity a request acts as. Authentication happens upstream."""
    id: str
    workspace: Optional[str] = None
    roles: List[str] = []

    @property
    def default_workspace(self) -> str:
        return self.workspace or self.id

    @property
    def is_admin(self) -> bool:
        """Check if caller has admin role."""
        return 'admin' in self.roles
