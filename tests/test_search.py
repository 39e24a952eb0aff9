from unittest.mock import MagicMock, patch

from guardbot.features.search import SearchHit, SearchService, format_video_results, format_web_results


def mock_ddgs(text_results=None, video_results=None):
    ddgs = MagicMock()
    ddgs.text.return_value = text_results
    ddgs.videos.return_value = video_results
    factory = MagicMock()
    factory.return_value.__enter__.return_value = ddgs
    return factory, ddgs


def test_web_search_maps_results():
    factory, ddgs = mock_ddgs(text_results=[
        {"title": "One", "href": "https://one.example", "body": "..."},
        {"title": "Two", "href": "https://two.example", "body": "..."},
    ])
    with patch("guardbot.features.search.DDGS", factory):
        hits = SearchService(max_results=3).web_search("query")

    assert hits == [SearchHit("One", "https://one.example"), SearchHit("Two", "https://two.example")]
    ddgs.text.assert_called_once_with("query", safesearch="off", max_results=3)


def test_video_search_maps_results():
    factory, _ = mock_ddgs(video_results=[
        {"title": "Lecture", "content": "https://www.youtube.com/watch?v=1"},
        {"title": "Embed only", "embed_url": "https://www.youtube.com/embed/2"},
    ])
    with patch("guardbot.features.search.DDGS", factory):
        hits = SearchService().video_search("calculus")

    assert [hit.url for hit in hits] == ["https://www.youtube.com/watch?v=1", "https://www.youtube.com/embed/2"]


def test_empty_search_results():
    factory, _ = mock_ddgs(text_results=None)
    with patch("guardbot.features.search.DDGS", factory):
        assert SearchService().web_search("nothing") == []


def test_format_web_results_limits_to_three():
    hits = [SearchHit(f"T{i}", f"https://{i}.example") for i in range(5)]
    reply = format_web_results("q", hits)
    assert reply.startswith("*Web Search – _q_*\n\n• *T0*\nhttps://0.example")
    assert "T3" not in reply


def test_format_results_without_hits():
    assert format_web_results("q", []).endswith("_No results found._")
    assert format_video_results("q", []) == "YouTube – _q_\n\n_No results found._"
