from datetime import datetime

from pydantic import BaseModel


class FileOut(BaseModel):
    id: int
    original_name: str
    filename: str
    mime_type: str
    size: int
    uploaded_by: int
    created_at: datetime

    model_config = {"from_attributes": True}
