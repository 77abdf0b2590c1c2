"""Tests for directory.pipeline.matcher — tier order and confidences."""
import pytest
from unittest.mock import MagicMock

from directory.pipeline.matcher import Matcher
from directory.pipeline.types import MatchStrategy


class TestMatcherTiers:

    def test_external_id_wins_at_full_confidence(self, store, make_business, make_lead):
        biz = make_business(external_place_id='G123')
        # Domain and phone would also match a different business
        make_business(trading_name='Other', website='https://lead-site.com.au', phone='0412 000 000')
        lead = make_lead(source_external_id='G123', website='https://lead-site.com.au', phone='0412000000')

        result = Matcher(store).match(lead)
        assert result.business_id == biz.id
        assert result.strategy == MatchStrategy.EXTERNAL_ID
        assert result.confidence == 1.0

    def test_domain_tier(self, store, make_business, make_lead):
        biz = make_business(website='https://perthpro.com.au')
        result = Matcher(store).match(make_lead(website='http://www.perthpro.com.au/about'))
        assert (result.business_id, result.strategy, result.confidence) == (biz.id, MatchStrategy.DOMAIN, 0.95)

    def test_domain_tier_matches_across_subdomains(self, store, make_business, make_lead):
        biz = make_business(website='https://www.perthpro.com.au')
        result = Matcher(store).match(make_lead(website='https://bookings.perthpro.com.au/contact'))
        assert (result.business_id, result.strategy) == (biz.id, MatchStrategy.DOMAIN)
        assert store.get_business(biz.id).website_domain == 'perthpro.com.au'

    def test_phone_tier(self, store, make_business, make_lead):
        biz = make_business(phone='0412 345 678', website=None)
        result = Matcher(store).match(make_lead(phone='+61 412 345 678', website='https://elsewhere.com.au'))
        assert (result.business_id, result.strategy, result.confidence) == (biz.id, MatchStrategy.PHONE, 0.90)

    def test_name_suburb_tier(self, store, make_business, make_lead):
        biz = make_business(trading_name='Perth Pro Plumbing & Gas', suburb='Perth', phone='', website=None)
        result = Matcher(store).match(make_lead(name='Perth Pro Plumbing', suburb='perth'))
        assert (result.business_id, result.strategy, result.confidence) == (biz.id, MatchStrategy.NAME_SUBURB, 0.60)

    def test_no_match(self, store, make_lead):
        result = Matcher(store).match(make_lead(phone='0400 000 000', suburb='Perth'))
        assert result.business_id is None
        assert result.strategy == MatchStrategy.NONE
        assert result.confidence == 0.0

    def test_ambiguous_phone_falls_through_to_name(self, store, make_business, make_lead):
        make_business(trading_name='Alpha Plumbing', suburb='Albany', phone='0412 345 678', website=None)
        make_business(trading_name='Beta Plumbing', suburb='Perth', phone='0412 345 678', website=None)
        result = Matcher(store).match(make_lead(name='Beta Plumbing', phone='0412345678', suburb='Perth'))
        assert result.strategy == MatchStrategy.NAME_SUBURB


class TestShortCircuit:

    def test_later_tiers_not_queried_after_hit(self, make_lead):
        store = MagicMock()
        store.find_by_external_id.return_value = None
        store.find_by_domain.return_value = 'biz-1'
        lead = make_lead(source_external_id='X', website='https://a.com.au', phone='0412345678', suburb='Perth')

        result = Matcher(store).match(lead)
        assert result.strategy == MatchStrategy.DOMAIN
        store.find_by_domain.assert_called_once_with('a.com.au')
        store.find_by_phone.assert_not_called()
        store.search_by_name_suburb.assert_not_called()

    def test_phone_normalised_before_lookup(self, make_lead):
        store = MagicMock()
        store.find_by_external_id.return_value = None
        store.find_by_domain.return_value = None
        store.find_by_phone.return_value = None
        store.search_by_name_suburb.return_value = None
        Matcher(store).match(make_lead(phone='0412 345 678'))
        store.find_by_phone.assert_called_once_with('+61412345678')
