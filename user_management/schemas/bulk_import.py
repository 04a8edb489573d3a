from pydantic import BaseModel, Field
from typing import Optional, Any


class ImportIssue(BaseModel):
    email: Optional[str] = None
    error: str
    line: Optional[int] = None
    detail: Optional[Any] = None


class InsertedUser(BaseModel):
    id: str
    email: str
    fullname: str
    role: str
    status: str

    class Config:
        from_attributes = True


class BulkImportResponse(BaseModel):
    message: str
    inserted: list[InsertedUser] = []
    duplicates_csv: list[ImportIssue] = Field(default=[], alias="duplicatesCSV")
    duplicates_db: list[ImportIssue] = Field(default=[], alias="duplicatesDB")
    errors: list[ImportIssue] = []

    class Config:
        populate_by_name = True
