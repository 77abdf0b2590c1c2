"""
Tiered entity resolution: link a NormalizedLead to an existing business.

Tiers run in order of decreasing reliability and stop at the first hit:
external id → website domain → phone → name + suburb.
"""
import logging

from directory.config import (
    DOMAIN_CONFIDENCE, EXTERNAL_ID_CONFIDENCE, NAME_SUBURB_CONFIDENCE, PHONE_CONFIDENCE,
)
from directory.pipeline.identifiers import extract_domain, normalize_phone
from directory.pipeline.schemas import NormalizedLead
from directory.pipeline.types import MatchResult, MatchStrategy

logger = logging.getLogger('pipeline.matcher')


class Matcher:

    def __init__(self, store):
        self.store = store

    def match(self, lead: NormalizedLead) -> MatchResult:
        tiers = (
            (MatchStrategy.EXTERNAL_ID, EXTERNAL_ID_CONFIDENCE,
             lambda: self.store.find_by_external_id(lead.source_external_id)),
            (MatchStrategy.DOMAIN, DOMAIN_CONFIDENCE,
             lambda: self.store.find_by_domain(extract_domain(lead.website))),
            (MatchStrategy.PHONE, PHONE_CONFIDENCE,
             lambda: self.store.find_by_phone(normalize_phone(lead.phone))),
            (MatchStrategy.NAME_SUBURB, NAME_SUBURB_CONFIDENCE,
             lambda: self.store.search_by_name_suburb(lead.name, lead.suburb)),
        )
        for strategy, confidence, lookup in tiers:
            business_id = lookup()
            if business_id:
                logger.debug("Lead '%s' matched %s via %s", lead.name, business_id, strategy.value)
                return MatchResult(business_id=business_id, strategy=strategy, confidence=confidence)
        return MatchResult.no_match()
