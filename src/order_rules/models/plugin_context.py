"""
Models for the Dataverse webhook payload.

When a step is registered with a webhook, Dataverse POSTs the serialized
RemoteExecutionContext. Collections arrive as lists of key/value pairs; the
models below expose them as dictionaries.
"""

from typing import Annotated, Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class KeyValuePair(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    key: str
    value: Any = None


def _to_dict(pairs: list[KeyValuePair]) -> dict[str, Any]:
    return {pair.key: pair.value for pair in pairs}


class DataverseEntity(BaseModel):
    """An Entity as serialized by the platform."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    logical_name: Annotated[str, Field(alias='LogicalName')] = ''

    id: Annotated[Optional[str], Field(alias='Id')] = None

    attribute_pairs: Annotated[list[KeyValuePair], Field(alias='Attributes')] = []

    @property
    def attributes(self) -> dict[str, Any]:
        return _to_dict(self.attribute_pairs)

    def contains(self, attribute: str) -> bool:
        return any(pair.key == attribute for pair in self.attribute_pairs)

    def get(self, attribute: str, default: Any = None) -> Any:
        return self.attributes.get(attribute, default)

    @classmethod
    def from_attributes(cls, logical_name: str, attributes: dict[str, Any], entity_id: Optional[str] = None) -> 'DataverseEntity':
        return cls(
            logical_name=logical_name,
            id=entity_id,
            attribute_pairs=[KeyValuePair(key=key, value=value) for key, value in attributes.items()],
        )


class RemoteExecutionContext(BaseModel):
    """The parts of the plugin execution context the order plugin reads."""

    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    message_name: Annotated[str, Field(alias='MessageName')] = ''

    primary_entity_name: Annotated[str, Field(alias='PrimaryEntityName')] = ''

    stage: Annotated[int, Field(alias='Stage')] = 0

    depth: Annotated[int, Field(alias='Depth')] = 1

    correlation_id: Annotated[Optional[str], Field(alias='CorrelationId')] = None

    user_id: Annotated[Optional[str], Field(alias='UserId')] = None

    organization_name: Annotated[Optional[str], Field(alias='OrganizationName')] = None

    input_parameter_pairs: Annotated[list[KeyValuePair], Field(alias='InputParameters')] = []

    @property
    def input_parameters(self) -> dict[str, Any]:
        return _to_dict(self.input_parameter_pairs)

    def get_target(self) -> Optional[DataverseEntity]:
        """The Target entity, or None when there is none or it is not an Entity."""
        target = self.input_parameters.get('Target')
        if not isinstance(target, dict) or 'LogicalName' not in target:
            return None
        return DataverseEntity.model_validate(target)
