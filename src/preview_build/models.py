from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class ContentQuery(BaseModel):
    """Description of rendered content to trace back to its source."""

    text: str | None = None
    alt_text: str | None = None
    # Whitespace-separated class tokens as they appear in the rendered markup.
    class_tokens: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_some_field(self) -> ContentQuery:
        has_attr = any(str(v or "").strip() for v in self.attributes.values())
        if not (
            (self.text or "").strip()
            or (self.alt_text or "").strip()
            or (self.class_tokens or "").strip()
            or has_attr
        ):
            raise ValueError("content query needs text, alt_text, class_tokens or attributes")
        return self


class BuildRequest(BaseModel):
    root_path: str
    entry_path: str

    @model_validator(mode="after")
    def _require_paths(self) -> BuildRequest:
        if not self.root_path.strip():
            raise ValueError("root_path is required")
        if not self.entry_path.strip():
            raise ValueError("entry_path is required")
        return self
