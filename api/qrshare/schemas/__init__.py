from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AppBaseModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        str_strip_whitespace=True,
        str_max_length=65536,
        extra="forbid",
        validate_default=True,
        # Browser clients speak camelCase JSON
        alias_generator=to_camel,
        populate_by_name=True,
    )
