"""
Optional face detection / image labeling enrichment.

Enrichment is best-effort and disabled by default. It never decides
whether an asset is DONE:
- every provider call is time-bounded and a timeout yields no results
- a CircuitBreaker turns enrichment off for the rest of the engine's
  lifetime after repeated consecutive failures
- tiny faces and faces in screenshots, websites or menus are not counted

Plug a real capability in by subclassing EnrichmentProvider.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..config import (
    CIRCUIT_BREAKER_THRESHOLD,
    CONTEXT_DISQUALIFIERS,
    DISQUALIFIER_CONFIDENCE,
    ENRICHMENT_TIMEOUT_SECONDS,
    LABEL_CROP_SIZE,
    MIN_FACE_WIDTH_RATIO,
)
from ..exceptions import CapabilityTimeout, CapabilityUnavailable
from ..models import DetectedFace, ImageLabel, encode_labels
from .signals import center_crop_square


logger = logging.getLogger(__name__)

# Assumed image width when the library does not report dimensions
_FALLBACK_IMAGE_WIDTH = 1000


class EnrichmentProvider(ABC):
    """Interface of an external face detection / labeling capability."""

    name = 'provider'

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def detect_faces(self, path: str) -> list[DetectedFace]:
        """Faces found in the image at path."""

    @abstractmethod
    def label_image(self, path: str) -> list[ImageLabel]:
        """Labels for the image at path, most confident first."""

    def close(self) -> None:
        pass


class NullEnrichment(EnrichmentProvider):
    """Default provider: never available, never returns anything."""

    name = 'null'

    def is_available(self) -> bool:
        return False

    def detect_faces(self, path: str) -> list[DetectedFace]:
        return []

    def label_image(self, path: str) -> list[ImageLabel]:
        return []


class TimeBoundEnrichment(EnrichmentProvider):
    """
    Runs each call of a wrapped provider on a worker thread with a timeout.

    A call that does not finish in time (or raises CapabilityTimeout
    itself) resolves to an empty list. Any other exception propagates.
    """

    def __init__(self, provider: EnrichmentProvider, timeout: float = ENRICHMENT_TIMEOUT_SECONDS):
        self.provider = provider
        self.timeout = timeout
        self.name = provider.name
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='shotsieve-enrich')

    def is_available(self) -> bool:
        return self.provider.is_available()

    def _call(self, func: Callable[[str], list], path: str, what: str) -> list:
        future = self._executor.submit(func, path)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeout:
            future.cancel()
            logger.warning(f"{what} timed out after {self.timeout:.1f}s for {path}")
            return []
        except CapabilityTimeout as e:
            logger.warning(f"{what} timed out for {path}: {e}")
            return []

    def detect_faces(self, path: str) -> list[DetectedFace]:
        return self._call(self.provider.detect_faces, path, 'Face detection')

    def label_image(self, path: str) -> list[ImageLabel]:
        return self._call(self.provider.label_image, path, 'Image labeling')

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
        self.provider.close()


class CircuitBreaker:
    """
    Consecutive-failure guard for the enrichment capability.

    Once failures exceed the threshold the breaker stays open for its
    whole lifetime; successes before that reset the count.
    """

    def __init__(self, threshold: int = CIRCUIT_BREAKER_THRESHOLD):
        self.threshold = threshold
        self._failures = 0
        self._tripped = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        """True when the capability must not be called any more."""
        with self._lock:
            return self._tripped

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failures

    def record_success(self) -> None:
        with self._lock:
            if not self._tripped:
                self._failures = 0

    def trip(self) -> None:
        """Open the breaker immediately."""
        with self._lock:
            if not self._tripped:
                self._tripped = True
                logger.warning("Enrichment disabled: capability unavailable")

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._failures > self.threshold and not self._tripped:
                self._tripped = True
                logger.warning(
                    f"Enrichment disabled after {self._failures} consecutive failures"
                )


@dataclass
class EnrichmentResult:
    """Outcome of enriching one asset."""
    labels: list[ImageLabel] = field(default_factory=list)
    faces: list[DetectedFace] = field(default_factory=list)
    face_count: int = 0

    @property
    def labels_json(self) -> Optional[str]:
        return encode_labels(self.labels)


def filter_faces(faces: list[DetectedFace], image_width: Optional[int]) -> list[DetectedFace]:
    """Drop faces narrower than MIN_FACE_WIDTH_RATIO of the image width."""
    min_width = (image_width or _FALLBACK_IMAGE_WIDTH) * MIN_FACE_WIDTH_RATIO
    return [f for f in faces if f.bounding_box.width > min_width]


def is_context_disqualified(labels: list[ImageLabel]) -> bool:
    """True when a confident label says the image is a screen, website, menu, etc."""
    return any(
        label.confidence > DISQUALIFIER_CONFIDENCE and label.text.lower() in CONTEXT_DISQUALIFIERS
        for label in labels
    )


class ImageEnricher:
    """
    Applies an EnrichmentProvider to analyzed assets under a CircuitBreaker.

    Labeling runs first on a square center crop, then face detection on the
    full image.
    """

    def __init__(
        self,
        provider: Optional[EnrichmentProvider] = None,
        enabled: bool = False,
        timeout: float = ENRICHMENT_TIMEOUT_SECONDS,
        breaker: Optional[CircuitBreaker] = None,
    ):
        provider = provider or NullEnrichment()
        self.provider = provider if isinstance(provider, TimeBoundEnrichment) else TimeBoundEnrichment(provider, timeout)
        self.enabled = enabled
        self.breaker = breaker or CircuitBreaker()

    @property
    def active(self) -> bool:
        """Whether enrichment would be attempted for the next asset."""
        return self.enabled and not self.breaker.is_open and self.provider.is_available()

    def enrich(self, path: str, width: Optional[int] = None, height: Optional[int] = None) -> Optional[EnrichmentResult]:
        """
        Label an image and count its faces.

        Args:
            path: Readable local path of the image
            width: Image width in pixels, if known
            height: Image height in pixels, if known

        Returns:
            EnrichmentResult, or None when enrichment is off or failed
        """
        if not self.active:
            return None

        try:
            labels = self._label(path, width, height)
            raw_faces = self.provider.detect_faces(path)
        except CapabilityUnavailable as e:
            logger.info(f"Enrichment capability went away: {e}")
            self.breaker.trip()
            return None
        except Exception as e:
            logger.warning(f"Enrichment failed for {path}: {e}")
            self.breaker.record_failure()
            return None

        self.breaker.record_success()

        faces = filter_faces(raw_faces, width)
        if faces and is_context_disqualified(labels):
            logger.debug(f"Ignoring {len(faces)} face(s) in {path}: screen-like context")
            faces = []
        if faces:
            logger.debug(f"Detected {len(faces)} valid face(s) in {path} (raw {len(raw_faces)})")

        return EnrichmentResult(labels=labels, faces=faces, face_count=len(faces))

    def _label(self, path: str, width: Optional[int], height: Optional[int]) -> list[ImageLabel]:
        labeling_path = path
        if width and height:
            labeling_path = center_crop_square(path, LABEL_CROP_SIZE)
        try:
            return self.provider.label_image(labeling_path)
        finally:
            if labeling_path != path:
                try:
                    os.remove(labeling_path)
                except OSError as e:
                    logger.debug(f"Could not remove crop {labeling_path}: {e}")

    def close(self) -> None:
        self.provider.close()


__all__ = [
    'EnrichmentProvider',
    'NullEnrichment',
    'TimeBoundEnrichment',
    'CircuitBreaker',
    'EnrichmentResult',
    'ImageEnricher',
    'filter_faces',
    'is_context_disqualified',
]
