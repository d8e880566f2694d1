from uuid import UUID

from app.schemas.common import CamelModel

class PersonSummary(CamelModel):
    id: UUID
    first_name: str
    last_name: str
