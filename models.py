"""
models.py — the shared record types.

Stored records use the camelCase keys of the persisted JSON blobs
(`identifiedProduct`, `searchResults`, `previewSrc`, `profilePic`, ...);
the Python attributes are snake_case.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Optional


# ── Image payload ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ImagePayload:
    """A base64-encoded image plus the MIME type sniffed from its bytes."""
    base64_payload: str
    mime_type: str

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_payload}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.base64_payload)

    @classmethod
    def from_data_url(cls, data_url: str) -> "ImagePayload":
        """Split a `data:<mime>;base64,<payload>` URL. Raises ValueError if malformed."""
        header, sep, payload = data_url.partition(",")
        if not sep or not header.startswith("data:") or not header.endswith(";base64"):
            raise ValueError("Not a base64 data URL")
        return cls(base64_payload=payload, mime_type=header[len("data:"):-len(";base64")])


# ── Search results ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ResultItem:
    """One purchasable listing, in the order the AI service returned it."""
    title: str
    link: str
    image_url: Optional[Any] = None
    price: Optional[Any] = None       # currency-inclusive, never parsed
    store_name: Optional[Any] = None

    def to_dict(self) -> dict:
        data = {"title": self.title, "link": self.link}
        if self.image_url is not None:
            data["imageUrl"] = self.image_url
        if self.price is not None:
            data["price"] = self.price
        if self.store_name is not None:
            data["storeName"] = self.store_name
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ResultItem":
        return cls(
            title=data["title"],
            link=data["link"],
            image_url=data.get("imageUrl"),
            price=data.get("price"),
            store_name=data.get("storeName"),
        )


@dataclass(frozen=True)
class SearchResult:
    identified_product: str
    search_results: tuple[ResultItem, ...] = ()

    def to_dict(self) -> dict:
        return {
            "identifiedProduct": self.identified_product,
            "searchResults": [item.to_dict() for item in self.search_results],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SearchResult":
        return cls(
            identified_product=data["identifiedProduct"],
            search_results=tuple(ResultItem.from_dict(i) for i in data.get("searchResults", [])),
        )


# ── Accounts ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HistoryEntry:
    """One past image search. Never mutated once created."""
    id: str
    timestamp: int              # epoch millis
    preview_src: str            # data URL of the searched image
    result: SearchResult

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "previewSrc": self.preview_src,
            "result": self.result.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HistoryEntry":
        return cls(
            id=data["id"],
            timestamp=int(data["timestamp"]),
            preview_src=data["previewSrc"],
            result=SearchResult.from_dict(data["result"]),
        )


@dataclass
class Account:
    """
    A locally persisted user. `email` is the storage key and is not part of
    the serialised record; it never changes after creation.
    """
    email: str
    password: str               # plaintext, local trust model only
    profile_pic: str = ""       # data URL, empty when unset
    location: Optional[str] = None
    history: list[HistoryEntry] = field(default_factory=list)   # newest first

    def to_record(self) -> dict:
        record = {
            "password": self.password,
            "profilePic": self.profile_pic,
            "history": [entry.to_dict() for entry in self.history],
        }
        if self.location is not None:
            record["location"] = self.location
        return record

    @classmethod
    def from_record(cls, email: str, record: dict) -> "Account":
        """Raises KeyError/TypeError/ValueError when the record is malformed."""
        return cls(
            email=email,
            password=record["password"],
            profile_pic=record.get("profilePic") or "",
            location=record.get("location"),
            history=[HistoryEntry.from_dict(e) for e in record.get("history", [])],
        )
