"""
Referral channel formatting for the single-customer lookup.
"""
from clv_insights.services.attribution import format_referrer_channel, format_utm
from clv_insights.utils.url_parsing import referrer_hostname


def test_no_visit_is_unknown():
    assert format_referrer_channel(None) == "Unknown"
    assert format_referrer_channel({}) == "Unknown"


def test_utm_wins_over_source_and_referrer():
    visit = {
        "source": "Google",
        "referrerUrl": "https://www.google.com/search",
        "utmParameters": {"source": "newsletter", "medium": "email", "campaign": "spring", "term": None, "content": ""},
    }
    assert format_referrer_channel(visit) == "UTM (source=newsletter, medium=email, campaign=spring)"


def test_utm_fields_keep_fixed_order():
    utm = {"content": "hero", "term": "boots", "campaign": "c1", "medium": "cpc", "source": "google"}
    assert format_utm(utm) == "source=google, medium=cpc, campaign=c1, term=boots, content=hero"


def test_utm_campaign_alone_does_not_count_as_utm():
    visit = {"source": "Instagram", "utmParameters": {"campaign": "c1"}}
    assert format_referrer_channel(visit) == "Instagram"


def test_named_source_with_description():
    visit = {"source": "Google", "sourceDescription": "Organic search"}
    assert format_referrer_channel(visit) == "Google - Organic search"


def test_referrer_hostname_used_when_no_source():
    visit = {"referrerUrl": "https://blog.example.com/posts/42?x=1"}
    assert format_referrer_channel(visit) == "blog.example.com"


def test_unparseable_referrer_falls_back_to_raw_value():
    assert format_referrer_channel({"referrerUrl": "not a url"}) == "not a url"
    assert referrer_hostname(None) is None


def test_format_utm_empty():
    assert format_utm(None) is None
    assert format_utm({"source": "", "medium": None}) is None
