from sitelist.scraper import parser

SITES_TABLE = """
<table id="sites_tbl">
<tr><td class='row_name'><a href='/info/whois/google.com'>google.com</a></td><td>1</td></tr>
<tr><td class="row_name" width="150"><a href="/info/whois/youtube.com" title="x">youtube.com</a></td></tr>
<tr><td class='row_name'><a href='/info/whois/facebook.com'>facebook.com</a></td></tr>
</table>
"""

CAPTCHA_PAGE = """
<html><body>
<h1>Human Verification</h1>
<form method="post" action="/browse/sites/1">
  <img src="/captcha.php?sid=abc123" alt="captcha">
  <input type="hidden" name="captcha_token" value=" tok-42 ">
  <input type="text" name="p_captcha_response">
</form>
</body></html>
"""


def test_extract_domains_keeps_page_order():
    assert parser.extract_domains(SITES_TABLE) == ["google.com", "youtube.com", "facebook.com"]


def test_extract_domains_handles_empty_input():
    assert parser.extract_domains("") == []
    assert parser.extract_domains(None) == []
    assert parser.extract_domains("<table></table>") == []


def test_block_markers():
    assert parser.is_session_expired(CAPTCHA_PAGE)
    assert not parser.is_rate_limited(CAPTCHA_PAGE)
    assert parser.is_rate_limited("<p>You have exceeded page visit limit for today</p>")
    assert not parser.is_session_expired(SITES_TABLE)


def test_captcha_token_and_image_url():
    assert parser.has_captcha_form(CAPTCHA_PAGE)
    assert parser.extract_captcha_token(CAPTCHA_PAGE) == "tok-42"
    assert parser.extract_captcha_url(CAPTCHA_PAGE) == "https://myip.ms/captcha.php?sid=abc123"


def test_captcha_url_keeps_absolute_sources():
    html = '<img src="https://cdn.example.com/captcha.php?sid=1">'
    assert parser.extract_captcha_url(html) == "https://cdn.example.com/captcha.php?sid=1"


def test_missing_captcha_parts_return_none():
    assert parser.extract_captcha_token(SITES_TABLE) is None
    assert parser.extract_captcha_url(SITES_TABLE) is None
    assert parser.extract_captcha_token('<input name="captcha_token" value="">') is None
