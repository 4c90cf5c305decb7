from typing import List

from pydantic import BaseModel


class HobbyOut(BaseModel):
    id: str
    name: str

    class Config:
        from_attributes = True


class HobbySelection(BaseModel):
    hobby_ids: List[str]
