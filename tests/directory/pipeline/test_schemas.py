"""Tests for directory.pipeline.schemas — website and email checks."""
import pytest

from directory.errors import LeadValidationError
from directory.pipeline.schemas import check_website


class TestCheckWebsite:

    @pytest.mark.parametrize('url', [
        'https://perthpro.com.au',
        'http://perthpro.com.au/path?q=1',
    ])
    def test_accepts_http_and_https_unchanged(self, url):
        assert check_website(url) == url

    @pytest.mark.parametrize('url', [
        'https://not-a-valid-url',
        'ftp://perthpro.com.au',
        'perthpro.com.au',
        'not a url',
    ])
    def test_rejects_dotless_host_and_other_schemes(self, url):
        with pytest.raises(ValueError):
            check_website(url)


class TestLeadEmail:

    def test_valid_email_kept(self, make_lead):
        assert make_lead(email='jobs@perthpro.com.au').email == 'jobs@perthpro.com.au'

    @pytest.mark.parametrize('email', ['not-an-email', 'jobs@', '@perthpro.com.au'])
    def test_invalid_email_rejected(self, make_lead, email):
        with pytest.raises(LeadValidationError) as exc:
            make_lead(email=email)
        assert exc.value.errors[0]['loc'] == ['email']
