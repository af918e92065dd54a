"""
Unit tests for optional enrichment and its circuit breaker.
"""

import os

import pytest

from shotsieve.exceptions import CapabilityTimeout
from shotsieve.models import BoundingBox, DetectedFace, ImageLabel
from shotsieve.scanner import CircuitBreaker, ImageEnricher, NullEnrichment, TimeBoundEnrichment
from shotsieve.scanner.enrichment import filter_faces, is_context_disqualified


def _face(width, confidence=0.9):
    return DetectedFace(BoundingBox(0, 0, width, width), confidence)


class TestCircuitBreaker:
    """Test consecutive-failure accounting."""

    def test_trips_after_threshold_exceeded(self):
        breaker = CircuitBreaker(threshold=3)
        for _ in range(3):
            breaker.record_failure()
        assert breaker.is_open is False
        breaker.record_failure()
        assert breaker.is_open is True

    def test_success_resets_count(self):
        breaker = CircuitBreaker(threshold=3)
        for _ in range(3):
            breaker.record_failure()
        breaker.record_success()
        assert breaker.failure_count == 0
        breaker.record_failure()
        assert breaker.is_open is False

    def test_stays_open(self):
        breaker = CircuitBreaker()
        breaker.trip()
        breaker.record_success()
        assert breaker.is_open is True


class TestFaceFiltering:
    """Test face validity rules."""

    def test_small_faces_dropped(self):
        faces = [_face(50), _face(150)]
        assert filter_faces(faces, 1000) == [_face(150)]

    def test_width_ratio_is_exclusive(self):
        assert filter_faces([_face(100)], 1000) == []

    def test_unknown_width_uses_fallback(self):
        assert len(filter_faces([_face(99), _face(101)], None)) == 1

    @pytest.mark.parametrize('text,confidence,expected', [
        ('Screenshot', 0.9, True),
        ('web site', 0.41, True),
        ('menu', 0.4, False),
        ('beach', 0.99, False),
    ])
    def test_context_disqualifiers(self, text, confidence, expected):
        assert is_context_disqualified([ImageLabel(text, confidence)]) is expected


class TestImageEnricher:
    """Test enrichment of a single asset."""

    def test_disabled_returns_none(self, fake_enrichment_cls):
        provider = fake_enrichment_cls(faces=[_face(500)])
        enricher = ImageEnricher(provider, enabled=False)
        assert enricher.enrich('photo.jpg') is None
        assert provider.face_calls == []

    def test_null_provider_inactive(self):
        assert ImageEnricher(NullEnrichment(), enabled=True).active is False

    def test_counts_valid_faces(self, fake_enrichment_cls):
        provider = fake_enrichment_cls(
            faces=[_face(50), _face(400), _face(600)],
            labels=[ImageLabel('beach', 0.9)],
        )
        result = ImageEnricher(provider, enabled=True).enrich('photo.jpg')
        assert result.face_count == 2
        assert result.labels == [ImageLabel('beach', 0.9)]
        assert result.labels_json is not None

    def test_screen_context_discards_faces(self, fake_enrichment_cls):
        provider = fake_enrichment_cls(
            faces=[_face(400)],
            labels=[ImageLabel('Monitor', 0.8)],
        )
        result = ImageEnricher(provider, enabled=True).enrich('photo.jpg')
        assert result.face_count == 0
        assert result.faces == []

    def test_failure_counts_towards_breaker(self, fake_enrichment_cls):
        enricher = ImageEnricher(fake_enrichment_cls(error=RuntimeError("model crashed")), enabled=True)
        assert enricher.enrich('photo.jpg') is None
        assert enricher.breaker.failure_count == 1

    def test_open_breaker_stops_calls(self, fake_enrichment_cls):
        provider = fake_enrichment_cls(error=RuntimeError("model crashed"))
        enricher = ImageEnricher(provider, enabled=True)
        for _ in range(4):
            enricher.enrich('photo.jpg')
        assert enricher.breaker.is_open
        calls = len(provider.label_calls)

        assert enricher.enrich('photo.jpg') is None
        assert len(provider.label_calls) == calls

    def test_unavailable_trips_immediately(self, unavailable_enrichment_cls):
        enricher = ImageEnricher(unavailable_enrichment_cls(), enabled=True)
        assert enricher.enrich('photo.jpg') is None
        assert enricher.breaker.is_open

    def test_timeout_yields_no_faces(self, fake_enrichment_cls):
        """A slow capability counts as 'no results', not as a failure."""
        provider = fake_enrichment_cls(faces=[_face(500)], delay=0.5)
        enricher = ImageEnricher(provider, enabled=True, timeout=0.05)
        result = enricher.enrich('photo.jpg')
        enricher.close()

        assert result.face_count == 0
        assert enricher.breaker.failure_count == 0

    def test_provider_timeout_error_yields_nothing(self, fake_enrichment_cls):
        provider = fake_enrichment_cls(error=CapabilityTimeout("deadline"))
        wrapped = TimeBoundEnrichment(provider, timeout=1.0)
        assert wrapped.detect_faces('photo.jpg') == []
        wrapped.close()

    def test_labels_use_temporary_crop(self, fake_enrichment_cls, sample_images):
        provider = fake_enrichment_cls()
        enricher = ImageEnricher(provider, enabled=True)

        enricher.enrich(sample_images['scene'], width=320, height=240)

        crop_path = provider.label_calls[0]
        assert crop_path != sample_images['scene']
        assert not os.path.exists(crop_path)
        assert provider.face_calls == [sample_images['scene']]

    def test_unknown_dimensions_label_original(self, fake_enrichment_cls, sample_images):
        provider = fake_enrichment_cls()
        ImageEnricher(provider, enabled=True).enrich(sample_images['scene'])
        assert provider.label_calls == [sample_images['scene']]
