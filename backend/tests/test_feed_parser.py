from datetime import datetime, timezone

from cryptosage.services.news.parser import FeedParser, parse_date

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:media="http://search.yahoo.com/mrss/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
<channel>
  <title>Example</title>
  <link>https://example.com</link>
  <item>
    <title>Bitcoin tops $30k</title>
    <link>https://example.com/btc-30k</link>
    <description><![CDATA[<p>Price <b>rallies</b></p><img src="https://img.example/inline.jpg"/>]]></description>
    <pubDate>Tue, 10 Oct 2023 14:30:00 GMT</pubDate>
    <enclosure url="https://img.example/enclosure.jpg" type="image/jpeg" length="0"/>
  </item>
  <item>
    <title>Ether upgrade ships</title>
    <link>https://example.com/eth</link>
    <description>No picture here</description>
    <dc:date>2023-10-10T12:00:00Z</dc:date>
    <media:content url="https://img.example/media.jpg" medium="image"/>
  </item>
  <item>
    <title>Inline image only</title>
    <link>https://example.com/inline</link>
    <description><![CDATA[<img class="x" src='https://img.example/first.png'> and <img src="https://img.example/second.png">]]></description>
    <pubDate>Mon, 09 Oct 2023 08:00:00 +0000</pubDate>
  </item>
  <item>
    <title>No link</title>
    <pubDate>Mon, 09 Oct 2023 08:00:00 +0000</pubDate>
  </item>
  <item>
    <title>No date</title>
    <link>https://example.com/undated</link>
  </item>
  <item>
    <title>Relative link</title>
    <link>/relative</link>
    <pubDate>Mon, 09 Oct 2023 08:00:00 +0000</pubDate>
  </item>
</channel>
</rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom" xmlns:media="http://search.yahoo.com/mrss/">
  <title>Atom Example</title>
  <entry>
    <title>Atom headline</title>
    <link rel="alternate" href="https://atom.example/story"/>
    <link rel="enclosure" href="https://atom.example/audio.mp3"/>
    <updated>2023-10-11T09:15:00+02:00</updated>
    <summary>Short summary</summary>
    <media:thumbnail url="https://img.example/thumb.jpg"/>
  </entry>
</feed>
"""


def parse(document: str, chunk_size: int = None):
    parser = FeedParser("Example")
    data = document.encode("utf-8")
    if chunk_size is None:
        chunks = [data]
    else:
        chunks = [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]
    items = []
    for chunk in chunks:
        items.extend(parser.feed(chunk))
    items.extend(parser.close())
    return parser, items


def test_rss_items_parsed_and_invalid_ones_dropped():
    _, items = parse(RSS)

    assert [a.url for a in items] == [
        "https://example.com/btc-30k",
        "https://example.com/eth",
        "https://example.com/inline",
    ]
    first = items[0]
    assert first.title == "Bitcoin tops $30k"
    assert first.description == "Price rallies"
    assert first.source == "Example"
    assert first.published_at == datetime(2023, 10, 10, 14, 30, tzinfo=timezone.utc)


def test_image_resolution_order():
    _, items = parse(RSS)
    images = {a.url: a.image_url for a in items}

    assert images["https://example.com/btc-30k"] == "https://img.example/enclosure.jpg"
    assert images["https://example.com/eth"] == "https://img.example/media.jpg"
    assert images["https://example.com/inline"] == "https://img.example/first.png"


def test_dc_date_accepted():
    _, items = parse(RSS)
    eth = next(a for a in items if a.url.endswith("/eth"))
    assert eth.published_at == datetime(2023, 10, 10, 12, 0, tzinfo=timezone.utc)


def test_atom_entry():
    _, items = parse(ATOM)

    assert len(items) == 1
    entry = items[0]
    assert entry.url == "https://atom.example/story"
    assert entry.description == "Short summary"
    assert entry.image_url == "https://img.example/thumb.jpg"
    assert entry.published_at == datetime(2023, 10, 11, 7, 15, tzinfo=timezone.utc)


def test_tiny_chunks_give_same_result():
    _, whole = parse(RSS)
    _, streamed = parse(RSS, chunk_size=7)

    assert streamed == whole


def test_malformed_document_keeps_items_parsed_so_far():
    broken = RSS.split("<item>\n    <title>Inline image only")[0] + "<item><title>oops</titel>"

    parser, items = parse(broken, chunk_size=50)

    assert parser.failed
    assert [a.url for a in items] == ["https://example.com/btc-30k", "https://example.com/eth"]


def test_parse_date_formats():
    assert parse_date("Tue, 10 Oct 2023 14:30:00 GMT").tzinfo is not None
    assert parse_date("2023-10-10T12:00:00") == datetime(2023, 10, 10, 12, tzinfo=timezone.utc)
    assert parse_date("yesterday") is None
    assert parse_date(None) is None
