from typing import List

from textile_ledger.schemas.common import CamelModel


class UserProfile(CamelModel):
    uid: str
    name: str = ""
    email: str = ""
    is_admin: bool = False
    permissions: List[str] = []

    def can(self, permission: str) -> bool:
        return self.is_admin or permission in self.permissions
