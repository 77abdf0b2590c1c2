"""
Centralized configuration — env vars, ingestion policy constants, reference data.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis (RQ job queue) ──────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
INGESTION_QUEUE_NAME = os.getenv('INGESTION_QUEUE_NAME', 'ingestion')
INGESTION_JOB_TIMEOUT = int(os.getenv('INGESTION_JOB_TIMEOUT', '3600'))

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── Admin API ─────────────────────────────────────────────────────────────────
# When unset the admin API is open (local dev).
ADMIN_API_TOKEN = os.getenv('ADMIN_API_TOKEN')

# ── Batch driver ──────────────────────────────────────────────────────────────
INGESTION_BATCH_SIZE = int(os.getenv('INGESTION_BATCH_SIZE', '20'))
INGESTION_MAX_WORKERS = int(os.getenv('INGESTION_MAX_WORKERS', '1'))

# ── Matcher confidences (one per tier) ───────────────────────────────────────
EXTERNAL_ID_CONFIDENCE = 1.0
DOMAIN_CONFIDENCE = 0.95
PHONE_CONFIDENCE = 0.90
NAME_SUBURB_CONFIDENCE = 0.60

# ── Write-gating policy ───────────────────────────────────────────────────────
# Matches at or above this score may write to draft businesses directly.
AUTO_WRITE_THRESHOLD = 0.95
# Confidence stamped on every generated suggestion (not the match score).
SUGGESTION_CONFIDENCE = 0.85

# Business columns an ingestion lead may auto-write on a draft.
AUTO_UPDATE_FIELDS = ('website', 'street_address', 'raw_business_hours')

# Business columns compared against a lead when filing suggestions.
# business column → NormalizedLead attribute
SUGGESTION_FIELDS = {
    'trading_name': 'name',
    'phone': 'phone',
    'email': 'email',
    'website': 'website',
    'street_address': 'address',
    'description': 'description',
}

# Suggestions that can be approved with one click (tight v1 list).
REVIEW_ALLOWED_FIELDS = frozenset({
    'phone',
    'email',
    'website',
    'street_address',
    'description',
})

# ── New business defaults ─────────────────────────────────────────────────────
INGESTION_INITIAL_STATUS = 'draft'
DEFAULT_SERVICES = ['general-plumbing']
DEFAULT_SERVICE_AREAS = ['perth']
LICENSE_PLACEHOLDER = 'INGESTION_PLACEHOLDER'
LICENSE_ISSUING_AUTHORITY = 'WA Building Services Board'

# ── Phone normalisation ───────────────────────────────────────────────────────
DEFAULT_COUNTRY_CODE = '61'

# ── Reference data — slug → display name ──────────────────────────────────────
SERVICE_TYPES = {
    'general-plumbing':   'General Plumbing',
    'emergency-plumbing': 'Emergency Plumbing',
    'drain-cleaning':     'Drain Cleaning',
    'blocked-drains':     'Blocked Drains',
    'sewer-repairs':      'Sewer Repairs',
    'hot-water-systems':  'Hot Water Systems',
    'gas-fitting':        'Gas Fitting',
}

SERVICE_AREAS = {
    'perth':      'Perth',
    'fremantle':  'Fremantle',
    'joondalup':  'Joondalup',
    'midland':    'Midland',
    'armadale':   'Armadale',
    'rockingham': 'Rockingham',
    'mandurah':   'Mandurah',
    'bunbury':    'Bunbury',
    'geraldton':  'Geraldton',
    'albany':     'Albany',
    'kalgoorlie': 'Kalgoorlie',
    'esperance':  'Esperance',
}

# Listing category keyword → service slug
CATEGORY_SERVICE_MAP = {
    'emergency':    'emergency-plumbing',
    'drain':        'drain-cleaning',
    'sewer':        'sewer-repairs',
    'septic':       'sewer-repairs',
    'water heater': 'hot-water-systems',
    'hot water':    'hot-water-systems',
    'gas':          'gas-fitting',
    'plumb':        'general-plumbing',
}
