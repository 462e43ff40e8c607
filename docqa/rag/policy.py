"""Retrieval policy: relevance thresholds and the context size bound."""
from pydantic import BaseModel, Field, model_validator


class RetrievalPolicy(BaseModel):
    """Thresholds and top-K bound shared by the retriever and the composer.

    A chunk is relevant when its similarity is strictly above
    ``relevance_threshold``. When nothing is relevant but the best
    similarity is strictly above ``partial_threshold``, the answer is
    flagged as a partial match.
    """

    relevance_threshold: float = Field(0.7, ge=-1.0, le=1.0)
    partial_threshold: float = Field(0.5, ge=-1.0, le=1.0)
    top_k: int = Field(3, ge=1, description="Max chunks injected into a prompt")

    @model_validator(mode="after")
    def check_thresholds(self) -> "RetrievalPolicy":
        if self.partial_threshold >= self.relevance_threshold:
            raise ValueError(
                f"partial_threshold ({self.partial_threshold}) must be below "
                f"relevance_threshold ({self.relevance_threshold})"
            )
        return self
