"""
Deterministic demo lead generator for the `seed` source.

Same seed, same payloads: nothing time-dependent goes into a payload, so
re-seeding produces identical payload hashes. A fraction of payloads
(fault_rate) carries one injected defect to exercise the failure paths.
"""
import random
from typing import Any, Dict, List

# Name / description / website patterns; {suburb} and {years} are filled in.
TEMPLATES = [
    {
        'name': '{suburb} Plumbing Services',
        'services': ['general-plumbing', 'emergency-plumbing', 'drain-cleaning'],
        'description': '{suburb} Plumbing Services offers 24/7 emergency plumbing solutions '
                       'with {years} years of experience.',
        'website': '{slug}-plumbing.com.au',
        'rating': 4.5,
        'emergency_available': True,
    },
    {
        'name': '{suburb} Hot Water Specialists',
        'services': ['hot-water-systems', 'gas-fitting'],
        'description': 'Specializing in hot water system installation and repair. '
                       'Serving {suburb} for over {years} years.',
        'website': '{slug}-hotwater.com.au',
        'rating': 4.7,
        'emergency_available': False,
    },
    {
        'name': '{suburb} Drain Masters',
        'services': ['drain-cleaning', 'blocked-drains', 'sewer-repairs'],
        'description': 'Expert drain cleaning and sewer repair services. '
                       'Available 24/7 for emergencies in {suburb}.',
        'website': '{slug}-drains.com.au',
        'rating': 4.3,
        'emergency_available': True,
    },
]

PERTH_SUBURBS = [
    'Perth', 'Fremantle', 'Joondalup', 'Midland', 'Armadale', 'Rockingham',
    'Mandurah', 'Bunbury', 'Geraldton', 'Albany', 'Kalgoorlie', 'Esperance',
]

STREETS = [
    'Main', 'High', 'King', 'Queen', 'Church', 'Market', 'Bridge', 'River',
    'Lake', 'Park', 'Garden', 'Ocean', 'Beach', 'Hill', 'Valley', 'Forest',
]

FAULT_INVALID_PHONE = 'invalid_phone'
FAULT_INVALID_URL = 'invalid_url'
FAULT_RATING_OUT_OF_RANGE = 'rating_out_of_range'
FAULT_MISSING_NAME = 'missing_name'
FAULTS = [FAULT_INVALID_PHONE, FAULT_INVALID_URL, FAULT_RATING_OUT_OF_RANGE, FAULT_MISSING_NAME]


def generate_business(index: int, rng: random.Random, fault_rate: float = 0.0, seed: int = 42) -> Dict[str, Any]:
    """One seed payload. Draw order from `rng` is fixed so output is reproducible."""
    template = TEMPLATES[index % len(TEMPLATES)]
    suburb = PERTH_SUBURBS[index % len(PERTH_SUBURBS)]
    street = STREETS[index % len(STREETS)]
    postcode = str(6000 + index % 200)
    area_code = 8 + index % 2
    digits = f'{rng.randrange(10_000_000):07d}'

    fault = FAULTS[rng.randrange(len(FAULTS))] if rng.random() < fault_rate else None
    years = 5 + int(rng.random() * 20)

    business = {
        'external_id': f'seed-{seed}-{index}',
        'name': template['name'].format(suburb=suburb),
        'services': list(template['services']),
        'service_areas': [suburb.lower()],
        'description': template['description'].format(suburb=suburb, years=years),
        'website': template['website'].format(slug=suburb.lower()),
        'phone': f'0{area_code}{digits}',
        'address': f'{index + 1} {street} St, {suburb} WA {postcode}',
        'suburb': suburb,
        'state': 'WA',
        'postcode': postcode,
        'lat': round(-31.95 + (rng.random() * 2 - 1) * 0.5, 6),
        'lng': round(115.85 + (rng.random() * 2 - 1) * 0.5, 6),
        'years_experience': 5 + int(rng.random() * 25),
        'emergency_available': template['emergency_available'],
        'rating': round(template['rating'] + (rng.random() * 0.5 - 0.25), 2),
        'review_count': 10 + int(rng.random() * 190),
    }

    if fault == FAULT_INVALID_PHONE:
        business['phone'] = 'INVALID_PHONE'
    elif fault == FAULT_INVALID_URL:
        business['website'] = 'not-a-valid-url'
    elif fault == FAULT_RATING_OUT_OF_RANGE:
        business['rating'] = 6.0
    elif fault == FAULT_MISSING_NAME:
        del business['name']

    if fault:
        business['injected_fault'] = fault
    return business


def generate_demo_payloads(count: int, seed: int = 42, fault_rate: float = 0.05) -> List[Dict[str, Any]]:
    if count < 0:
        raise ValueError('count must be non-negative')
    if not 0.0 <= fault_rate <= 1.0:
        raise ValueError('fault_rate must be between 0 and 1')
    rng = random.Random(seed)
    return [generate_business(i, rng, fault_rate=fault_rate, seed=seed) for i in range(count)]
