from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    domain: str = Field(..., description="One of business, product, creative, research, technical")


class AppendTurnRequest(BaseModel):
    role: str
    content: str
