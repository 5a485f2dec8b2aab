from pydantic import BaseModel


class Stats(BaseModel):
    users: int
    files: int
    shares: int
    active_shares: int
