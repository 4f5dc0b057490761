import pytest

from stackeer.tools.cache_status import CacheStatusInput, CacheStatusTool


@pytest.mark.asyncio
async def test_cache_status_reports_probe_and_stats(service):
    tool = CacheStatusTool(service)

    before = await tool.run(CacheStatusInput(url="https://x/data.json"))
    await service.fetch_url("https://x/data.json", "text")
    after = await tool.invoke({"url": "https://x/data.json"})

    assert before.cached is False
    assert after["cached"] is True
    assert after["inFlight"] == 0
    assert before.entries == 0
    assert after["entries"] == 1
    assert after["stats"]["cache_misses"] == 1


@pytest.mark.asyncio
async def test_cache_status_without_url_omits_probe(service):
    result = await CacheStatusTool(service).invoke({})
    assert "cached" not in result
    assert "url" not in result
