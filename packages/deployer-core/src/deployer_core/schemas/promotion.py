"""Promotion request, deploy manifest and result schemas.

These models are the wire contract of the promote-images pipeline step:

- PromotionRequest: one invocation from the deployment workflow
- DeployManifest / ImageSpec: ``deploy-manifest.json`` next to the build artifacts
- TargetContext: where images go (absent account = same account)
- PromotionResult: the step's output, also its only completion signal

Example:
    >>> request = PromotionRequest.model_validate({
    ...     "env": "prod", "repo": "myapp", "sk": "2a1b", "s3_bucket": "artifacts",
    ...     "s3_key": "myapp/main/1.0.0/", "target_account": "123456789012",
    ... })
    >>> request.target.is_cross_account
    True
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ImageSpec(BaseModel):
    """One image to promote.

    Both fields are required to be non-empty, but that is enforced when the
    image is promoted rather than when the manifest is parsed, so a bad
    entry fails the batch at its position in manifest order.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    repository: str = Field(default="", description="Registry repository name (e.g. myapp/api)")
    tag: str = Field(default="", description="Image tag")

    @field_validator("repository", "tag", mode="before")
    @classmethod
    def null_is_empty(cls, v: Any) -> Any:
        """Treat JSON null as an empty value, rejected later by the promoter."""
        return "" if v is None else v

    @property
    def reference(self) -> str:
        """Return ``repository:tag``."""
        return f"{self.repository}:{self.tag}"


class DeployManifest(BaseModel):
    """Contents of ``deploy-manifest.json``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    images: list[ImageSpec] = Field(default_factory=list)

    @field_validator("images", mode="before")
    @classmethod
    def null_images_is_empty(cls, v: Any) -> Any:
        """A null images list (an empty slice from some producers) means no images."""
        return [] if v is None else v


class TargetContext(BaseModel):
    """Destination of a promotion.

    Attributes:
        account: Target account id; None means the source account.
        region: Target region; None means the invoking region.
    """

    model_config = ConfigDict(frozen=True)

    account: str | None = None
    region: str | None = None

    @property
    def is_cross_account(self) -> bool:
        """Whether images must be copied into another account."""
        return bool(self.account)


class PromotionRequest(BaseModel):
    """Input of one promote-images invocation.

    Accepts the workflow's wire names (``repo``, ``sk``, ``s3_bucket``,
    ``s3_key``) as well as the field names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    env: str = Field(default="", description="Deployment environment")
    repository: str = Field(default="", alias="repo", description="Source code repository")
    build_id: str = Field(default="", alias="sk", description="Build identifier")
    source_bucket: str = Field(..., min_length=1, alias="s3_bucket")
    source_key_prefix: str = Field(..., alias="s3_key", description="Artifact key prefix")
    target_account: str | None = None
    target_region: str | None = None

    @property
    def target(self) -> TargetContext:
        """Return the target context, with empty strings treated as absent."""
        return TargetContext(
            account=self.target_account or None,
            region=self.target_region or None,
        )


class PromotionResult(BaseModel):
    """Output of one promote-images invocation.

    Serialized with ``model_dump(by_alias=True)`` as
    ``{"images_promoted": int, "images": [...], "skipped": bool}``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    images_promoted: int = Field(default=0, ge=0)
    image_uris: list[str] = Field(default_factory=list, alias="images")
    skipped: bool = False

    @classmethod
    def skipped_result(cls) -> PromotionResult:
        """Result for a request with nothing to promote."""
        return cls(images_promoted=0, image_uris=[], skipped=True)

    def to_output(self) -> dict[str, object]:
        """Return the wire representation."""
        return self.model_dump(by_alias=True)


__all__ = [
    "DeployManifest",
    "ImageSpec",
    "PromotionRequest",
    "PromotionResult",
    "TargetContext",
]
