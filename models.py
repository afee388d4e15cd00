from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Optional


@dataclass
class FileDescriptor:
    id: str
    name: str
    size: int
    type: str
    upload_date: str
    path: str
    remark: Optional[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialise with the keys used by the legacy JSON file."""
        return {
            "id": self.id,
            "name": self.name,
            "size": self.size,
            "type": self.type,
            "uploadDate": self.upload_date,
            "remark": self.remark,
            "path": self.path,
        }

    def to_api(self) -> Dict[str, Any]:
        """Same as to_dict without the internal blob name."""
        data = self.to_dict()
        del data["path"]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileDescriptor":
        return cls(
            id=data["id"],
            name=data["name"],
            size=int(data["size"]),
            type=data.get("type") or "",
            upload_date=data.get("uploadDate") or data["upload_date"],
            path=data["path"],
            remark=data.get("remark"),
        )


@dataclass
class DiskUsage:
    total: int = 0
    used: int = 0
    free: int = 0
    percent: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class UploadState(str, Enum):
    INITIATED = "initiated"
    RECEIVING = "receiving"
    FINALIZING = "finalizing"
    ABANDONED = "abandoned"
