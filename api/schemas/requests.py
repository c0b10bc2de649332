from pydantic import BaseModel, ConfigDict, Field


class ConnectivityRequest(BaseModel):
	online: bool = Field(..., description='Whether the host currently has network access')

	model_config = ConfigDict(json_schema_extra={'example': {'online': False}})
