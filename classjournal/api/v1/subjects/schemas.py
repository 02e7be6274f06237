from pydantic import BaseModel, Field


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class SubjectUpdate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class SubjectResponse(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True
