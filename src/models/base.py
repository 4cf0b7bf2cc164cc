"""
Shared pydantic base for persisted records
"""

from typing import Annotated, Any, Dict

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from utils import dates

# dd/mm/yyyy string, normalized on the way in; malformed input is a field error
DateStr = Annotated[str, AfterValidator(dates.normalize)]


class CamelModel(BaseModel):
    """Records are stored and served with camelCase keys; snake_case is accepted on input"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
