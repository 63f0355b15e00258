# dedupe.py
import hashlib
import io
import logging
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import imagehash
from PIL import Image, UnidentifiedImageError

from .models import DeduplicationGroup, ScreenshotRecord

logger = logging.getLogger(__name__)

KEEP_POLICIES = ('largest', 'first-captured', 'first-found')


@dataclass
class Fingerprint:
    index: int
    kind: str  # perceptual | content
    value: Any
    metadata_hash: Optional[str] = None


class ImageDeduplicationService:
    """Groups near-identical screenshots by average hash and keeps one per group."""

    def __init__(self, similarity_threshold: float = 95, hash_size: int = 16, keep_policy: str = 'largest'):
        if keep_policy not in KEEP_POLICIES:
            raise ValueError(f"Unknown keep policy: {keep_policy}")
        self.similarity_threshold = similarity_threshold
        self.hash_size = hash_size
        self.keep_policy = keep_policy

    def compute_fingerprint(self, buffer: bytes, index: int = 0) -> Fingerprint:
        try:
            with Image.open(io.BytesIO(buffer)) as image:
                width, height = image.size
                fmt = image.format or 'unknown'
                phash = imagehash.average_hash(image, hash_size=self.hash_size)
            meta = hashlib.md5(f"{width}x{height}_{len(buffer)}_{fmt}".encode()).hexdigest()
            return Fingerprint(index, 'perceptual', phash, meta)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning(f"Perceptual hash failed for screenshot {index}, using content hash: {e}")
            return Fingerprint(index, 'content', hashlib.sha256(buffer).hexdigest())

    @staticmethod
    def similarity(a: Fingerprint, b: Fingerprint) -> float:
        """Percentage of equal hash bits; content hashes only match exactly."""
        if a.kind != b.kind or a.kind == 'content':
            return 100.0 if a.kind == b.kind and a.value == b.value else 0.0
        bits = a.value.hash.size
        if bits != b.value.hash.size:
            return 0.0
        return (bits - (a.value - b.value)) / bits * 100

    def find_duplicate_groups(self, fingerprints: Sequence[Fingerprint]) -> List[List[int]]:
        parent = list(range(len(fingerprints)))

        def find(i):
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for i in range(len(fingerprints)):
            for j in range(i + 1, len(fingerprints)):
                if self.similarity(fingerprints[i], fingerprints[j]) >= self.similarity_threshold:
                    parent[find(j)] = find(i)

        clusters: Dict[int, List[int]] = {}
        for i in range(len(fingerprints)):
            clusters.setdefault(find(i), []).append(i)
        return [members for members in clusters.values() if len(members) > 1]

    def _pick_representative(self, members: List[int], screenshots: Sequence[ScreenshotRecord],
                             fingerprints: Sequence[Fingerprint]) -> int:
        if self.keep_policy == 'first-found':
            return min(members)
        if self.keep_policy == 'first-captured':
            return min(members, key=lambda i: (screenshots[i].timestamp, i))
        common = Counter(fingerprints[i].metadata_hash for i in members)
        return min(members, key=lambda i: (-screenshots[i].size, -common[fingerprints[i].metadata_hash], i))

    def deduplicate(self, screenshots: Sequence[ScreenshotRecord]) -> Tuple[List[ScreenshotRecord], Dict[str, Any]]:
        fingerprints = [self.compute_fingerprint(s.buffer, i) for i, s in enumerate(screenshots)]
        failures = sum(1 for f in fingerprints if f.kind == 'content')

        groups = []
        dropped = set()
        for members in self.find_duplicate_groups(fingerprints):
            kept = self._pick_representative(members, screenshots, fingerprints)
            min_similarity = min(
                self.similarity(fingerprints[a], fingerprints[b])
                for n, a in enumerate(members) for b in members[n + 1:]
            )
            groups.append(DeduplicationGroup(members=members, kept=kept, min_similarity=min_similarity))
            dropped.update(i for i in members if i != kept)
            logger.info(
                f"Duplicate group of {len(members)}: keeping {screenshots[kept].filename}, "
                f"dropping {', '.join(screenshots[i].filename for i in members if i != kept)}"
            )

        unique = [s for i, s in enumerate(screenshots) if i not in dropped]
        report = {
            'total_processed': len(screenshots),
            'duplicate_groups': len(groups),
            'total_duplicates_removed': len(dropped),
            'hash_failures': failures,
            'groups': [
                {
                    'kept': screenshots[g.kept].filename,
                    'members': [screenshots[i].filename for i in g.members],
                    'min_similarity': round(g.min_similarity, 2),
                }
                for g in groups
            ],
            'settings': {
                'similarity_threshold': self.similarity_threshold,
                'hash_size': self.hash_size,
                'keep_policy': self.keep_policy,
            },
        }
        logger.info(f"Deduplication: {len(screenshots)} -> {len(unique)} screenshots")
        return unique, report
