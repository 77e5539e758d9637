from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def blank_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
