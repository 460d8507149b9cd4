from typing import List, Optional

from pydantic import BaseModel


class UploadPrincipal(BaseModel):
    subject: str
    permissions: List[str] = []
    email: Optional[str] = None

    def can(self, permission: str) -> bool:
        return permission in self.permissions
