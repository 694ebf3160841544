"""
Collaborator interfaces.

Blob storage (images, files) and quota accounting live outside this package.
DataService only forwards calls to objects satisfying these protocols.
"""

from typing import Any, Literal, Optional, Protocol, TypedDict, Union, runtime_checkable

OperationType = Literal["read", "write", "delete"]


class OperationCheck(TypedDict, total=False):
    """Pre-flight description of an operation for the quota guard."""

    type: OperationType
    size: int
    database: str


class Feasibility(TypedDict, total=False):
    feasible: bool
    reason: str


class UsageStats(TypedDict):
    usage: dict[str, Any]
    alerts: list[dict[str, Any]]
    recommendations: list[str]


CollectionScope = Optional[Union[str, list[str]]]


@runtime_checkable
class BlobStorage(Protocol):
    """Image and file storage."""

    async def upload_image(
        self, image: Union[str, bytes], file_name: str, collection_id: CollectionScope = None
    ) -> dict[str, Any]: ...

    async def get_image(
        self, image_id: str, collection_id: CollectionScope = None
    ) -> Optional[str]: ...

    async def get_image_metadata(
        self, image_id: str, collection_id: CollectionScope = None
    ) -> Optional[dict[str, Any]]: ...

    async def update_image(
        self, image_id: str, image: Union[str, bytes], collection_id: CollectionScope = None
    ) -> dict[str, Any]: ...

    async def delete_image(self, image_id: str, collection_id: CollectionScope = None) -> None: ...

    async def list_images(self, collection_id: CollectionScope = None) -> list[dict[str, Any]]: ...

    async def upload_file(
        self, file: Union[str, bytes], file_name: str, folder_path: Optional[str] = None
    ) -> dict[str, Any]: ...

    async def get_file(self, file_id: str, folder_path: Optional[str] = None) -> Optional[str]: ...

    async def get_file_metadata(
        self, file_id: str, folder_path: Optional[str] = None
    ) -> Optional[dict[str, Any]]: ...

    async def update_file(
        self, file_id: str, file: Union[str, bytes], folder_path: Optional[str] = None
    ) -> dict[str, Any]: ...

    async def delete_file(self, file_id: str, folder_path: Optional[str] = None) -> None: ...

    async def list_files(self, folder_path: Optional[str] = None) -> list[dict[str, Any]]: ...


@runtime_checkable
class QuotaGuard(Protocol):
    """Advisory usage-quota checks; never enforced by DataService itself."""

    async def check_operation_feasibility(self, operation: OperationCheck) -> Feasibility: ...

    async def get_usage_stats(self) -> UsageStats: ...
