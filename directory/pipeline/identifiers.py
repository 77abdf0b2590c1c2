"""
Identifier normalisation used for matching: phone numbers and website domains.

Both the matcher (lead side) and the store (business side) go through these
functions so the equality lookups compare like with like.
"""
import re
from typing import Optional

import tldextract

from directory.config import DEFAULT_COUNTRY_CODE

_NON_DIGITS = re.compile(r'\D')

# Bundled public suffix snapshot only; never fetched over the network
_tld_extract = tldextract.TLDExtract(suffix_list_urls=())


def normalize_phone(phone: Optional[str]) -> str:
    """
    Reduce a phone number to +<country><number>.

    "0412 345 678"  → "+61412345678"
    "61412345678"   → "+61412345678"
    "+61 8 9000 1234" → "+61890001234"
    """
    if not phone:
        return ''
    digits = _NON_DIGITS.sub('', phone)
    if not digits:
        return ''
    if digits.startswith(DEFAULT_COUNTRY_CODE):
        return f'+{digits}'
    if digits.startswith('0'):
        return f'+{DEFAULT_COUNTRY_CODE}{digits[1:]}'
    return f'+{digits}'


def extract_domain(url: Optional[str]) -> str:
    """
    Registrable domain of a website URL, lowercased.

    "https://www.acme.com.au/contact" and "bookings.acme.com.au" both give
    "acme.com.au". Bare hosts are accepted.
    """
    if not url or not url.strip():
        return ''
    ext = _tld_extract(url.strip().lower())
    return '.'.join(p for p in (ext.domain, ext.suffix) if p)
