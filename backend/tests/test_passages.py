import requests

from typerace.services.passages import DEFAULT_PASSAGE, Passage, PassageProvider, clean_quote


class FakeResponse:
    def __init__(self, body=None, status_code=200, bad_json=False):
        self.body = body
        self.status_code = status_code
        self.bad_json = bad_json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        if self.bad_json:
            raise ValueError('not json')
        return self.body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return self.response


def _provider(**kwargs):
    return PassageProvider('http://quotes.test/quote', timeout=(1, 1), session=FakeSession(**kwargs))


def test_clean_quote_normalizes_punctuation():
    assert clean_quote('“It’s  fine”\n— me…') == '"It\'s fine" - me...'


def test_fetch_cleans_remote_quote():
    provider = _provider(response=FakeResponse({'quote': 'Don’t panic.', 'author': 'Douglas Adams'}))
    assert provider.fetch() == Passage(content="Don't panic.", author='Douglas Adams')
    assert provider.session.calls == [('http://quotes.test/quote', (1, 1))]


def test_fetch_missing_author():
    provider = _provider(response=FakeResponse({'quote': 'Hello there'}))
    assert provider.fetch().author == 'Unknown'


def test_fallback_on_network_error():
    provider = _provider(error=requests.ConnectionError('down'))
    assert provider.fetch() == DEFAULT_PASSAGE


def test_fallback_on_bad_status_json_or_empty_quote():
    assert _provider(response=FakeResponse(status_code=503)).fetch() == DEFAULT_PASSAGE
    assert _provider(response=FakeResponse(bad_json=True)).fetch() == DEFAULT_PASSAGE
    assert _provider(response=FakeResponse({'quote': '   '})).fetch() == DEFAULT_PASSAGE
    assert _provider(response=FakeResponse(['not', 'a', 'dict'])).fetch() == DEFAULT_PASSAGE


def test_no_url_never_calls_out():
    session = FakeSession(error=AssertionError('should not be called'))
    provider = PassageProvider('', session=session)
    assert provider.fetch() == DEFAULT_PASSAGE
    assert session.calls == []
