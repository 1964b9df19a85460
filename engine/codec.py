"""
engine/codec.py

Persistence codec: serializes the workspace (blocks, connections and the
drawing layer) into flat key-value storage and rebuilds it on boot.

Stored keys:
    workspaceLayout     JSON {"layout": [block records], "connections": [{"start", "end"}]}
    workspaceDrawing    PNG data URI, absent when the drawing is blank
    workspaceTheme      theme name
    searchGlowEnabled   "true" / "false"
    tutorialCompleted   "true" once the tour has been dismissed

Saving is best-effort: storage and encoding failures are logged and the
in-memory workspace carries on.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

from debug_trace import trace, trace_call
from engine.connections import Edge
from engine.errors import RecordError, StorageError
from engine.raster import RasterLayer
from engine.storage import KeyValueStorage
from engine.themes import DEFAULT_THEME, normalize_theme
from models import DEFAULT_TITLES, BlockKind, Point, Size, SpatialObject, StyleHints, TextFormat
from schemas import validate_block, validate_edge
from settings import BlockSettings
from utils import is_image_data_uri, parse_px

if TYPE_CHECKING:
    from engine.session import WorkspaceSession

log = logging.getLogger(__name__)

KEY_LAYOUT = "workspaceLayout"
KEY_DRAWING = "workspaceDrawing"
KEY_THEME = "workspaceTheme"
KEY_SEARCH_GLOW = "searchGlowEnabled"
KEY_TUTORIAL = "tutorialCompleted"

_SAVE_ERRORS = (StorageError, OSError, TypeError, ValueError)


@dataclass
class Preferences:
    """Scalar user preferences stored next to the workspace."""
    theme: str = DEFAULT_THEME
    search_glow_enabled: bool = True
    tutorial_completed: bool = False


@dataclass
class WorkspaceSnapshot:
    """Decoded workspace state, not yet attached to a session."""
    objects: List[SpatialObject] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    raster: Optional[str] = None   # PNG data URI; None means blank

    @property
    def is_empty(self) -> bool:
        return not self.objects and not self.edges and self.raster is None


# ----------------------------
# Record conversion
# ----------------------------

def is_legacy_record(record: Dict[str, Any]) -> bool:
    """Records written by the first release use CSS-style field names."""
    return "kind" not in record and ("type" in record or "left" in record)


def upgrade_legacy_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a first-release block record to the current layout.

    Legacy records carry ``type``, ``left``/``top``/``width``/``height`` as
    ``"123px"`` strings, ``name``, ``content``, ``rotation`` and ``color``.
    A stored rotation of 0 meant "no rotation assigned".
    """
    defaults = BlockSettings()
    style: Dict[str, Any] = {}
    rotation = parse_px(record.get("rotation"))
    if rotation:
        style["rotation"] = rotation
    color = record.get("color")
    if isinstance(color, str) and color:
        style["color"] = color

    # Untyped blocks were created as text notes
    kind = record.get("type") or BlockKind.TEXT.value
    legacy_id = record.get("id")
    upgraded: Dict[str, Any] = {
        "id": str(legacy_id) if legacy_id is not None else None,
        "kind": kind,
        "position": {
            "x": parse_px(record.get("left"), 0.0),
            "y": parse_px(record.get("top"), 0.0),
        },
        "size": {
            "width": parse_px(record.get("width"), defaults.default_width),
            "height": parse_px(record.get("height"), defaults.default_height),
        },
        "style": style,
    }
    if record.get("name") is not None:
        upgraded["title"] = record.get("name")
    if record.get("content") is not None:
        upgraded["payload"] = record.get("content")
    if kind == BlockKind.TEXT.value:
        # Legacy note content was the editor's markup
        upgraded["format"] = TextFormat.HTML
    return upgraded


def object_from_record(record: Dict[str, Any]) -> SpatialObject:
    """
    Build a detached SpatialObject from a validated block record.

    Raises:
        RecordError: If the record does not describe a block.
    """
    try:
        kind = BlockKind(record["kind"])
        pos = record["position"]
        size = record["size"]
        return SpatialObject(
            id=str(record["id"]),
            kind=kind,
            position=Point(float(pos["x"]), float(pos["y"])),
            size=Size(float(size["width"]), float(size["height"])),
            title=record.get("title", DEFAULT_TITLES[kind]),
            payload=record.get("payload", ""),
            style=StyleHints.from_dict(record.get("style")),
            text_format=record.get("format", TextFormat.PLAIN),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise RecordError(f"Bad block record {record.get('id')!r}: {e}") from e


def encode_layout(objects: Sequence[SpatialObject], edges: Sequence[Edge]) -> str:
    """Serialize blocks and connections into the workspaceLayout JSON string."""
    return json.dumps({
        "layout": [obj.to_record() for obj in objects],
        "connections": [e.to_record() for e in edges],
    }, allow_nan=False)


def decode_layout(text: str) -> Tuple[List[SpatialObject], List[Edge]]:
    """
    Parse a workspaceLayout string, skipping records that fail validation.

    Invalid JSON yields an empty workspace. Connections are kept only when
    both ends name a loaded block; duplicates in either direction and
    self-connections are dropped.
    """
    try:
        data = json.loads(text)
    except ValueError as e:
        log.warning("Stored layout is not valid JSON, starting empty: %s", e)
        return [], []

    if isinstance(data, list):
        raw_blocks, raw_edges = data, []
    elif isinstance(data, dict):
        raw_blocks = data.get("layout") or []
        raw_edges = data.get("connections") or []
    else:
        log.warning("Stored layout has unexpected type %s, starting empty", type(data).__name__)
        return [], []
    if not isinstance(raw_blocks, list):
        raw_blocks = []
    if not isinstance(raw_edges, list):
        raw_edges = []

    objects: List[SpatialObject] = []
    seen = set()
    for raw in raw_blocks:
        if isinstance(raw, dict) and is_legacy_record(raw):
            raw = upgrade_legacy_record(raw)
        ok, errors = validate_block(raw)
        if not ok:
            log.warning("Skipping invalid block record: %s", "; ".join(errors))
            continue
        try:
            obj = object_from_record(raw)
        except RecordError as e:
            log.warning("%s", e)
            continue
        if obj.id in seen:
            log.warning("Skipping duplicate block id %s", obj.id)
            continue
        seen.add(obj.id)
        objects.append(obj)

    edges: List[Edge] = []
    keys = set()
    for raw in raw_edges:
        if isinstance(raw, dict) and "start" not in raw and "a" in raw:
            raw = {"start": raw.get("a"), "end": raw.get("b")}
        ok, errors = validate_edge(raw)
        if not ok:
            log.warning("Skipping invalid connection record: %s", "; ".join(errors))
            continue
        edge = Edge(raw["start"], raw["end"])
        if edge.start == edge.end or edge.start not in seen or edge.end not in seen:
            trace(f"dropping dangling connection {edge.start} -> {edge.end}", "CODEC")
            continue
        if edge.key in keys:
            continue
        keys.add(edge.key)
        edges.append(edge)

    return objects, edges


# ----------------------------
# Codec
# ----------------------------

class PersistenceCodec:
    """
    The only component that touches storage.

    Args:
        storage: Backing key-value store.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    # ---- workspace ----

    @trace_call("CODEC")
    def save(self, objects: Sequence[SpatialObject], edges: Sequence[Edge],
             raster: Optional[RasterLayer]) -> bool:
        """
        Write the layout and drawing entries.

        A blank (or absent) raster removes the stored drawing. Each entry is
        attempted independently.

        Returns:
            True if every entry was written.
        """
        ok = True
        try:
            self.storage.set(KEY_LAYOUT, encode_layout(objects, edges))
        except _SAVE_ERRORS as e:
            log.error("Could not save workspace layout: %s", e)
            ok = False

        try:
            if raster is None or raster.is_blank():
                self.storage.remove(KEY_DRAWING)
            else:
                self.storage.set(KEY_DRAWING, raster.to_data_uri())
        except _SAVE_ERRORS as e:
            log.error("Could not save drawing: %s", e)
            ok = False

        trace(f"saved {len(objects)} blocks, {len(edges)} connections ok={ok}", "CODEC")
        return ok

    def save_session(self, session: "WorkspaceSession") -> bool:
        return self.save(session.store.all(), session.graph.edges(), session.raster)

    @trace_call("CODEC")
    def load(self) -> WorkspaceSnapshot:
        """
        Read the stored workspace.

        Returns:
            An empty snapshot when nothing is stored. Undecodable parts are
            logged and left out.
        """
        snapshot = WorkspaceSnapshot()
        try:
            layout = self.storage.get(KEY_LAYOUT)
            drawing = self.storage.get(KEY_DRAWING)
        except StorageError as e:
            log.error("Could not read workspace: %s", e)
            return snapshot

        if layout:
            snapshot.objects, snapshot.edges = decode_layout(layout)

        if drawing:
            if is_image_data_uri(drawing):
                snapshot.raster = drawing
            else:
                log.warning("Ignoring stored drawing: not an image data URI")

        trace(f"loaded {len(snapshot.objects)} blocks, {len(snapshot.edges)} connections", "CODEC")
        return snapshot

    def load_into(self, session: "WorkspaceSession") -> WorkspaceSnapshot:
        """Load the stored workspace and rebuild it inside ``session``."""
        snapshot = self.load()
        session.restore(snapshot)
        return snapshot

    # ---- preferences ----

    def load_preferences(self) -> Preferences:
        prefs = Preferences()
        try:
            prefs.theme = normalize_theme(self.storage.get(KEY_THEME))
            prefs.search_glow_enabled = self.storage.get(KEY_SEARCH_GLOW) != "false"
            prefs.tutorial_completed = self.storage.get(KEY_TUTORIAL) == "true"
        except StorageError as e:
            log.error("Could not read preferences: %s", e)
        return prefs

    def save_preferences(self, prefs: Preferences) -> bool:
        try:
            self.storage.set(KEY_THEME, normalize_theme(prefs.theme))
            self.storage.set(KEY_SEARCH_GLOW, "true" if prefs.search_glow_enabled else "false")
            if prefs.tutorial_completed:
                self.storage.set(KEY_TUTORIAL, "true")
            else:
                self.storage.remove(KEY_TUTORIAL)
        except _SAVE_ERRORS as e:
            log.error("Could not save preferences: %s", e)
            return False
        return True
