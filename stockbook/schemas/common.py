from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises as camelCase (the API's JSON convention) but accepts snake_case too."""

    model_config = {"alias_generator": to_camel, "populate_by_name": True, "from_attributes": True}


class NamedRef(CamelModel):
    id: str
    name: str
