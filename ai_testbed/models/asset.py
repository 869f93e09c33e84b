"""Asset (model artifact) state tracked by the provisioner."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

_ORDER = {"absent": 0, "downloading": 1, "present": 2}


class AssetState(str, Enum):  # noqa: UP042
    """Presence of an asset inside one running instance.

    Transitions only move forward: ABSENT -> DOWNLOADING -> PRESENT.
    """

    ABSENT = "absent"
    DOWNLOADING = "downloading"
    PRESENT = "present"


class AssetRecord(BaseModel):
    """A named asset and its presence state within one running instance.

    Records are frozen; :meth:`advance` returns a new record and refuses to
    move backwards.
    """

    model_config = ConfigDict(frozen=True)

    container_id: str
    asset_id: str
    state: AssetState = AssetState.ABSENT
    # True when the local cache directory already held files for the asset.
    cached_locally: bool = False
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(tz=timezone.utc)  # noqa: UP017
    )

    def advance(self, state: AssetState) -> AssetRecord:
        if _ORDER[state.value] < _ORDER[self.state.value]:
            raise ValueError(f"cannot move asset {self.asset_id!r} from {self.state.value} to {state.value}")
        return self.model_copy(
            update={"state": state, "updated_at": datetime.now(tz=timezone.utc)}  # noqa: UP017
        )


def split_tag(asset_id: str) -> tuple[str, str | None]:
    """Split ``"name:tag"`` into ``("name", "tag")``.

    Only a colon after the last ``/`` counts as a tag separator, so registry
    hosts with ports (``host:5000/org/model``) keep their name intact.

    >>> split_tag("all-minilm:l6-v2")
    ('all-minilm', 'l6-v2')
    >>> split_tag("org/model-a")
    ('org/model-a', None)
    """
    slash = asset_id.rfind("/")
    colon = asset_id.rfind(":")
    if colon > slash:
        return asset_id[:colon], asset_id[colon + 1:]
    return asset_id, None


def is_listed(asset_id: str, listed: set[str] | frozenset[str]) -> bool:
    """Return True if *asset_id* counts as present in a listing.

    ``name:tag`` is satisfied by ``name:tag`` or the bare ``name``.  A bare
    ``name`` is satisfied by ``name`` or any tagged ``name:<tag>``, because
    servers such as Ollama report untagged pulls as ``name:latest``.
    """
    if asset_id in listed:
        return True
    name, tag = split_tag(asset_id)
    if tag is not None:
        return name in listed
    return any(split_tag(entry)[0] == name for entry in listed)
