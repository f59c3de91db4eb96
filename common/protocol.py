"""Wire contract message definitions shared by the clients and the reference server."""

from typing import Any, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from common.exceptions import WireContractError
from common.types import Manifest, ManifestChunk

DIGEST_PATTERN = r'^[0-9a-fA-F]{64}$'

ModelT = TypeVar('ModelT', bound='WireModel')


class WireModel(BaseModel):
    """Base model: camelCase on the wire, unknown fields rejected."""
    model_config = ConfigDict(populate_by_name=True, extra='forbid')

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class InitRequest(WireModel):
    """Request body for opening an upload session."""
    file_size: int = Field(alias='fileSize', gt=0)
    filename: str = Field(min_length=1)
    file_content: Optional[str] = Field(default=None, alias='fileContent')
    file_hash: str = Field(alias='fileHash', pattern=DIGEST_PATTERN)
    total_chunks: int = Field(alias='totalChunks', gt=0)
    thumbnail: Optional[str] = Field(default=None, description="Base64-encoded image")


class InitResponse(WireModel):
    """Response body carrying the session token."""
    upload_id: str = Field(alias='uploadId', min_length=1)


class ChunkResponse(WireModel):
    """Acknowledgement of a stored chunk."""
    upload_id: str = Field(alias='uploadId')
    index: int = Field(ge=1)


class CompleteRequest(WireModel):
    """Request body for sealing an upload session."""
    upload_id: str = Field(alias='uploadId', min_length=1)


class CompleteResponse(WireModel):
    """Response body for a published asset."""
    file_id: str = Field(alias='fileId')
    total_chunks: int = Field(alias='totalChunks')


class ChunkIndexEntry(WireModel):
    """Index and digest of one published chunk."""
    index: int = Field(ge=1)
    hash: str = Field(pattern=DIGEST_PATTERN)


class FullResponse(WireModel):
    """Response body for a source file the server segmented itself."""
    file_id: str = Field(alias='fileId')
    total_chunks: int = Field(alias='totalChunks', gt=0)
    chunks: List[ChunkIndexEntry]


class ManifestResponse(WireModel):
    """Published description of an asset."""
    file_id: str = Field(alias='fileId', min_length=1)
    file_name: str = Field(alias='fileName')
    file_size: int = Field(alias='fileSize', ge=0)
    file_hash: str = Field(alias='fileHash', pattern=DIGEST_PATTERN)
    chunks: List[ChunkIndexEntry]

    @model_validator(mode='after')
    def check_contiguous(self) -> 'ManifestResponse':
        indices = [entry.index for entry in self.chunks]
        if indices != list(range(1, len(indices) + 1)):
            raise ValueError(f"chunk indices must be 1..N in order, got {indices}")
        return self

    def to_manifest(self) -> Manifest:
        return Manifest(
            asset_id=self.file_id,
            file_name=self.file_name,
            file_size=self.file_size,
            file_hash=self.file_hash.lower(),
            chunks=tuple(ManifestChunk(index=e.index, digest=e.hash.lower()) for e in self.chunks),
        )

    @classmethod
    def from_manifest(cls, manifest: Manifest) -> 'ManifestResponse':
        return cls(
            file_id=manifest.asset_id,
            file_name=manifest.file_name,
            file_size=manifest.file_size,
            file_hash=manifest.file_hash,
            chunks=[ChunkIndexEntry(index=c.index, hash=c.digest) for c in manifest.chunks],
        )


class CatalogEntry(WireModel):
    """One catalog search result."""
    id: str
    name: str
    content: Optional[str] = None
    thumbnail: Optional[str] = None


class CatalogPage(WireModel):
    """A page of catalog results."""
    items: List[CatalogEntry]
    page: int = Field(ge=0)
    size: int = Field(gt=0)
    total: int = Field(ge=0)


class ErrorResponse(WireModel):
    """Response model for errors."""
    detail: str
    code: str


def parse_model(model_cls: Type[ModelT], payload: Any) -> ModelT:
    """
    Validate a decoded JSON payload against a wire model.

    Args:
        model_cls: Wire model class
        payload: Decoded JSON body

    Returns:
        Validated model instance

    Raises:
        WireContractError: If the payload deviates from the contract
    """
    try:
        return model_cls.model_validate(payload)
    except ValidationError as e:
        raise WireContractError(
            f"Malformed {model_cls.__name__}: {e.error_count()} validation error(s): {e.errors()[0]['msg']}"
        ) from e
