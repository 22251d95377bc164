from core.proxy_rewrite import ProxyRewriter, rewrite_stream_url


def test_http_page_https_stream_goes_through_secure_tunnel():
    out = rewrite_stream_url("http:", "https://a.b/c?d=1")
    assert out == "/proxy/a.b/c?d=1"


def test_https_page_https_stream_unchanged():
    assert rewrite_stream_url("https:", "https://a.b/c?d=1") == "https://a.b/c?d=1"


def test_https_page_http_stream_goes_through_plain_tunnel():
    assert rewrite_stream_url("https", "http://a.b:8080/live/x.m3u8") == "/httpproxy/a.b:8080/live/x.m3u8"


def test_http_page_http_stream_unchanged():
    assert rewrite_stream_url("http", "http://a.b/x") == "http://a.b/x"


def test_malformed_urls_pass_through():
    assert rewrite_stream_url("http", "https://") == "https://"
    assert rewrite_stream_url("http", "https://[::1/x") == "https://[::1/x"
    assert rewrite_stream_url("http", "rtmp://a/b") == "rtmp://a/b"


def test_custom_prefixes():
    assert rewrite_stream_url("http", "https://a.b/c", secure_prefix="/s/") == "/s/a.b/c"


def test_rewriter_with_origin():
    rw = ProxyRewriter.for_origin("http://127.0.0.1:9005")
    assert rw.rewrite("https://a.b/c?d=1") == "http://127.0.0.1:9005/proxy/a.b/c?d=1"
    assert rw.rewrite("http://a.b/c") == "http://a.b/c"
