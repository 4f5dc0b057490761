from unittest.mock import MagicMock

import pytest

from stackeer.tools.clear_cache import ClearCacheInput, ClearCacheTool


@pytest.fixture
def mock_service():
    service = MagicMock()
    service.get_stats = MagicMock(return_value={"total_requests": 0})
    return service


@pytest.fixture
def tool(mock_service):
    return ClearCacheTool(mock_service)


@pytest.mark.asyncio
async def test_clear_cache_run_clears_everything(tool, mock_service):
    result = await tool.run(ClearCacheInput())

    mock_service.clear_all.assert_called_once()
    mock_service.reset_stats.assert_called_once()
    mock_service.clear_entry.assert_not_called()
    assert result.status == "success"
    assert "Cache cleared" in result.message


@pytest.mark.asyncio
async def test_clear_cache_run_clears_single_url(tool, mock_service):
    result = await tool.run(ClearCacheInput(url="https://x/img.png"))

    mock_service.clear_entry.assert_called_once_with("https://x/img.png")
    mock_service.clear_all.assert_not_called()
    assert "https://x/img.png" in result.message


@pytest.mark.asyncio
async def test_clear_cache_removes_real_entry(service):
    await service.fetch_url("https://x/data.json", "text")
    assert service.is_cached("https://x/data.json")

    payload = await ClearCacheTool(service).invoke({"url": "https://x/data.json"})

    assert payload["status"] == "success"
    assert not service.is_cached("https://x/data.json")
