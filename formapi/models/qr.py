from datetime import datetime
from typing import Optional

from pydantic import computed_field

from formapi.models.common import CamelModel


class QRLink(CamelModel):
    token: str
    form_id: str
    scan_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field(alias="shortUrl")
    @property
    def short_url(self) -> str:
        return f"/q/{self.token}"
