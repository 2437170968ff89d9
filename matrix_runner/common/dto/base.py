from typing import Dict, Any

from pydantic import BaseModel, ConfigDict


class FrozenDTO(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        arbitrary_types_allowed=True,
        ser_json_timedelta="iso8601",
    )

    def model_dump_json_safe(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
