from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel

from .catalog import CONCEPTS, get_concept

logger = logging.getLogger(__name__)

MAX_RESOURCES = 3


class LearningResource(BaseModel):
    title: str
    url: str
    kind: Literal["article", "blog", "video", "course"] = "article"
    description: str = ""


@dataclass
class ResourceEntry:
    id: str
    kind: str
    title: str
    url: str
    focus: str = ""
    concepts: List[str] = field(default_factory=list)

    def to_resource(self) -> LearningResource:
        return LearningResource(
            title=self.title,
            url=self.url,
            kind="video" if self.kind.lower() == "video" else "article",
            description=self.focus or f"Learning resource about {self.title}",
        )


def _matches(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(k.lower() in lowered for k in keywords)


def parse_library(content: str) -> List[ResourceEntry]:
    """Parse the tab-separated library.

    Rows are ``id, kind, title, url[, focus]``. Lines starting with ``#`` are comments. A row
    without a focus column takes the following tab-free line as its focus.
    """
    lines = [line.strip() for line in content.splitlines()]
    lines = [line for line in lines if line and not line.startswith("#")]
    entries: List[ResourceEntry] = []
    i = 0
    while i < len(lines):
        parts = lines[i].split("\t")
        i += 1
        if len(parts) < 4 or not parts[0].strip():
            continue
        focus = parts[4].strip() if len(parts) > 4 else ""
        if not focus and i < len(lines) and "\t" not in lines[i]:
            focus = lines[i]
            i += 1
        entry = ResourceEntry(
            id=parts[0].strip(),
            kind=parts[1].strip(),
            title=parts[2].strip(),
            url=parts[3].strip(),
            focus=focus,
        )
        search = f"{entry.title} {entry.focus}"
        entry.concepts = [c.id for c in CONCEPTS if _matches(search, c.keywords)]
        entries.append(entry)
    return entries


class ResourceLibrary:
    def __init__(self, path: Path, rng: Optional[random.Random] = None) -> None:
        self.path = Path(path)
        self.rng = rng or random.Random()
        self._entries: Optional[List[ResourceEntry]] = None

    @property
    def entries(self) -> List[ResourceEntry]:
        if self._entries is None:
            try:
                content = self.path.read_text(encoding="utf-8")
            except OSError as exc:
                logger.error("Could not read resource library %s: %s", self.path, exc)
                content = ""
            self._entries = parse_library(content)
            logger.info("Loaded %d learning resources from %s", len(self._entries), self.path)
        return self._entries

    def resources_for(self, concept_ids: Iterable[str]) -> List[LearningResource]:
        """Up to three resources covering the given weak concepts; ``[]`` when there are none."""
        weak = list(dict.fromkeys(concept_ids))
        if not weak:
            return []
        entries = self.entries
        if not entries:
            logger.warning("Resource library is empty, no resources to recommend")
            return []

        picked: Dict[str, ResourceEntry] = {}
        for concept_id in weak:
            concept = get_concept(concept_id)
            keywords = concept.keywords if concept else (concept_id,)
            for entry in entries:
                if entry.id in picked:
                    continue
                if concept_id in entry.concepts or _matches(f"{entry.title} {entry.focus}", keywords):
                    picked[entry.id] = entry
                    break
            if len(picked) >= MAX_RESOURCES:
                break

        if len(picked) < MAX_RESOURCES:
            remaining = [e for e in entries if e.id not in picked]
            self.rng.shuffle(remaining)
            for entry in remaining[: MAX_RESOURCES - len(picked)]:
                picked[entry.id] = entry

        resources = [e.to_resource() for e in list(picked.values())[:MAX_RESOURCES]]
        logger.info("Recommended %d resources for %d weak concepts", len(resources), len(weak))
        return resources
