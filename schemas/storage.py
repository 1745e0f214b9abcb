from pydantic import BaseModel


class UploadResponse(BaseModel):
    success: bool
    url: str
    message: str
