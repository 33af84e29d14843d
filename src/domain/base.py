import uuid
from sqlmodel import SQLModel


class BaseModel(SQLModel):
    """Base for all persisted domain entities"""


def generate_uuid() -> str:
    return str(uuid.uuid4())
