"""Entity search result model."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from scripture_search.content.models import EntityKind


class SearchResult(BaseModel):
    """One entity in a search response.

    Produced by both the keyword scorer and semantic entity search; a single
    response only ever contains scores from one of them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entity_id: str = Field(description="Entity identifier within its kind")
    kind: EntityKind = Field(description="Content kind")
    title: str = Field(description="Display title")
    description: str = Field(default="", description="Short description")
    slug: str = Field(default="", description="URL slug")
    url: str = Field(default="", description="Canonical site URL")
    score: float = Field(description="Relevance score")
