from __future__ import annotations

import json

import pytest

from core.genre_txt import parse_delimited_catalog
from core.json_playlist import parse_catalog_document, parse_json, to_json
from core.m3u import parse_extinf, parse_m3u, to_m3u
from core.models import UNCATEGORIZED, Category, Channel, generate_channel_id, make_id
from core.playlist import DEFAULT_GROUP, detect_playlist_format, group_items, parse_any


def test_m3u_single_extinf():
    items = parse_m3u("#EXTM3U\n#EXTINF:-1,Channel A\nhttp://a\n")
    assert len(items) == 1
    assert items[0].name == "Channel A"
    assert items[0].url == "http://a"


def test_m3u_title_after_last_comma_and_attributes():
    meta = parse_extinf('#EXTINF:-1 tvg-logo="http://l/x.png" group-title="News, World",BBC, One')
    assert meta["name"] == "One"
    assert meta["group"] == "News, World"
    assert meta["logo"] == "http://l/x.png"


def test_m3u_skips_option_lines_and_bad_lines():
    text = "\n".join([
        "#EXTM3U",
        '#EXTINF:-1 group-title="Sport",Eurosport',
        "#EXTVLCOPT:http-user-agent=Mozilla",
        "http://e/sport.m3u8",
        "garbage line",
        "#EXTINF:-1,No URL",
        "#EXTINF:-1,Next",
        "http://n/next.m3u8",
        "Direct TV,http://d/tv.m3u8",
    ])
    items = parse_m3u(text)
    assert [(i.name, i.url, i.category) for i in items] == [
        ("Eurosport", "http://e/sport.m3u8", "Sport"),
        ("Next", "http://n/next.m3u8", ""),
        ("Direct TV", "http://d/tv.m3u8", ""),
    ]


def test_delimited_catalog_merges_urls_without_duplicates():
    text = "\n".join([
        "央视频道,#genre#",
        "1→CCTV1,http://a/cctv1.m3u8",
        "卫视频道,#genre#",
        "1→湖南卫视,http://h/1.m3u8",
        "2→湖南卫视,http://h/2.m3u8",
        "3→湖南卫视,http://h/1.m3u8",
        "no separator,http://x/y",
    ])
    cats = parse_delimited_catalog(text)
    assert [c.name for c in cats] == ["央视频道", "卫视频道"]

    second = cats[1]
    assert len(second.channels) == 1
    ch = second.channels[0]
    assert ch.name == "湖南卫视"
    assert ch.urls == ("http://h/1.m3u8", "http://h/2.m3u8")
    assert ch.quality == "SD"
    assert ch.language == "zh-CN"
    assert ch.id == make_id("卫视频道-湖南卫视")


def test_delimited_catalog_default_bucket_and_empty_categories():
    text = "→Early,http://e/early.flv\nEmpty,#genre#\nFull,#genre#\n→B,http://b\n→A,http://a\n"
    cats = parse_delimited_catalog(text)
    assert [c.name for c in cats] == [UNCATEGORIZED, "Full"]
    assert cats[0].channels[0].format == "FLV"
    assert [ch.name for ch in cats[1].channels] == ["A", "B"]
    assert [c.sort_order for c in cats] == [0, 1]


def test_json_field_aliases():
    text = json.dumps([
        {"title": "T1", "stream": "http://s/1.m3u8", "group": "G", "icon": "i.png"},
        {"name": "N2", "title": "ignored", "url": "http://s/2.mpd"},
        "not an object",
    ])
    items = parse_json(text)
    assert [(i.name, i.url, i.category, i.logo) for i in items] == [
        ("T1", "http://s/1.m3u8", "G", "i.png"),
        ("N2", "http://s/2.mpd", "", None),
    ]


@pytest.mark.parametrize("text", ["", "{not json", '{"a": 1}', "42"])
def test_json_bad_input_is_empty(text):
    assert parse_json(text) == []


def test_group_items_default_group_and_fallback_urls():
    cats = parse_any("A,http://x/a.m3u8\nA,http://y/a.m3u8\nB,http://x/b.mpd\n", "m3u")
    assert len(cats) == 1
    assert cats[0].name == DEFAULT_GROUP
    a, b = cats[0].channels
    assert a.urls == ("http://x/a.m3u8", "http://y/a.m3u8")
    assert b.format == "DASH"


def test_to_m3u_writes_first_url_only():
    ch = Channel(id="c", name="Chan", urls=("http://1", "http://2"), category="G", logo="l.png")
    out = to_m3u([Category(id="g", name="G", channels=(ch,))])
    assert out.startswith("#EXTM3U\n")
    assert '#EXTINF:-1 tvg-name="Chan" tvg-logo="l.png" group-title="G",Chan\nhttp://1\n' in out
    assert "http://2" not in out

    back = parse_m3u(out)
    assert [(i.name, i.url, i.category) for i in back] == [("Chan", "http://1", "G")]


def test_to_json_first_url_only():
    ch = Channel(id="c", name="Chan", urls=("http://1", "http://2"), category="G")
    data = json.loads(to_json([Category(id="g", name="G", channels=(ch,))]))
    assert data == [{"name": "Chan", "url": "http://1", "category": "G"}]


def test_catalog_document(catalog_text):
    cats = parse_catalog_document(catalog_text)
    assert [c.id for c in cats] == ["sports", "news"]
    # l'entrée sans URL est ignorée
    assert [ch.id for ch in cats[0].channels] == ["sports-cctv5"]
    assert cats[0].channels[0].format == "RTMP"
    assert cats[0].channels[0].quality == "FHD"
    assert cats[1].channels[1].urls == ("http://c.example/cgtn.flv",)


def test_catalog_document_without_categories_raises():
    with pytest.raises(ValueError):
        parse_catalog_document('{"channels": []}')


def test_channel_requires_url():
    with pytest.raises(ValueError):
        Channel(id="x", name="x", urls=(), category="c")


@pytest.mark.parametrize("text,hint,expected", [
    ("#EXTM3U\n", "auto", "m3u"),
    ("\ufeff#EXTINF:-1,A\nhttp://a", "auto", "m3u"),
    ("News,#genre#\n→A,http://a", "auto", "txt"),
    ('[{"name": "a"}]', "auto", "json"),
    ('{"categories": []}', "auto", "catalog"),
    ("whatever", "m3u8", "m3u"),
    ("#EXTM3U", "txt", "txt"),
])
def test_detect_playlist_format(text, hint, expected):
    assert detect_playlist_format(text, hint) == expected


def test_generate_channel_id():
    assert generate_channel_id("CCTV 1  HD!", "央视") == "央视-cctv-1-hd"


def test_bom_before_extinf_keeps_first_channel():
    cats = parse_any("\ufeff#EXTINF:-1,A\nhttp://a/1.m3u8\n")
    assert [ch.name for c in cats for ch in c.channels] == ["A"]
    assert len(parse_m3u("\ufeffA,http://a/1.m3u8")) == 1


def test_bom_before_genre_marker():
    cats = parse_any("\ufeff新闻,#genre#\n1→CCTV13,http://a/13.m3u8\n")
    assert [c.name for c in cats] == ["新闻"]
    assert parse_delimited_catalog("\ufeff新闻,#genre#\n→A,http://a")[0].name == "新闻"


def test_bom_before_json(catalog_text):
    assert len(parse_any("\ufeff" + catalog_text)) == 2
    assert len(parse_json('\ufeff[{"name": "A", "url": "http://a"}]')) == 1
