"""Tests for directory.pipeline.demo_leads — deterministic seed payloads."""
import pytest

from directory.config import SERVICE_AREAS, SERVICE_TYPES
from directory.errors import LeadValidationError
from directory.pipeline.demo_leads import FAULTS, generate_demo_payloads
from directory.pipeline.normalizer import SeedNormalizer


class TestGenerateDemoPayloads:

    def test_same_seed_same_payloads(self):
        assert generate_demo_payloads(25, seed=7) == generate_demo_payloads(25, seed=7)

    def test_different_seed_differs(self):
        assert generate_demo_payloads(10, seed=1) != generate_demo_payloads(10, seed=2)

    def test_same_seed_same_hashes(self):
        normalizer = SeedNormalizer()
        first = [normalizer.normalize(p).payload_hash for p in generate_demo_payloads(5, fault_rate=0)]
        second = [normalizer.normalize(p).payload_hash for p in generate_demo_payloads(5, fault_rate=0)]
        assert first == second

    def test_clean_payloads_use_known_reference_data(self):
        for payload in generate_demo_payloads(30, fault_rate=0):
            assert 'injected_fault' not in payload
            assert set(payload['services']) <= set(SERVICE_TYPES)
            assert set(payload['service_areas']) <= set(SERVICE_AREAS)
            assert payload['external_id'].startswith('seed-42-')

    def test_clean_payloads_normalize(self):
        normalizer = SeedNormalizer()
        for payload in generate_demo_payloads(12, fault_rate=0):
            lead = normalizer.normalize(payload)
            assert lead.website.startswith('https://')
            assert lead.source_external_id == payload['external_id']

    def test_every_payload_faulty_at_rate_one(self):
        payloads = generate_demo_payloads(40, fault_rate=1.0)
        assert all(p['injected_fault'] in FAULTS for p in payloads)
        assert {p['injected_fault'] for p in payloads} == set(FAULTS)

    @pytest.mark.parametrize('fault', ['invalid_url', 'rating_out_of_range', 'missing_name'])
    def test_schema_faults_fail_normalization(self, fault):
        payload = next(p for p in generate_demo_payloads(40, fault_rate=1.0) if p['injected_fault'] == fault)
        with pytest.raises(LeadValidationError):
            SeedNormalizer().normalize(payload)

    def test_invalid_phone_survives_normalization(self):
        payload = next(p for p in generate_demo_payloads(40, fault_rate=1.0)
                       if p['injected_fault'] == 'invalid_phone')
        assert SeedNormalizer().normalize(payload).phone == 'INVALID_PHONE'

    @pytest.mark.parametrize('kwargs', [{'count': -1}, {'count': 1, 'fault_rate': 1.5}])
    def test_bad_arguments(self, kwargs):
        with pytest.raises(ValueError):
            generate_demo_payloads(**kwargs)
