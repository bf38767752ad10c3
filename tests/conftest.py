"""
测试配置 - pytest 配置和公共 fixtures
"""

import json
import random
from datetime import datetime
from unittest.mock import Mock

import pytest

from stockmedia.adapters.iconfinder_adapter import IconfinderAdapter
from stockmedia.adapters.pexels_adapter import PexelsAdapter
from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.adapters.shape_catalog import InMemoryShapeCatalog
from stockmedia.adapters.unsplash_adapter import UnsplashAdapter
from stockmedia.domain.models import MediaItem, MediaType, SearchResult
from stockmedia.infrastructure.validator import ResponseValidator


PUBLIC_BASE_URL = "http://media.test"


# ==================== 工具函数 ====================

def make_response(payload=None, status_code=200, headers=None, text=None):
    """构造模拟的 requests 响应"""
    response = Mock()
    response.status_code = status_code
    response.headers = headers or {}
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response.text = text
    return response


def make_item(item_id, source="unsplash", media_type=MediaType.IMAGE, is_premium=False):
    """构造测试用素材条目"""
    return MediaItem(
        id=item_id,
        name=f"Item {item_id}",
        type=media_type,
        mime_type="image/jpeg",
        url=f"https://cdn.example.com/{item_id}.jpg",
        source=source,
        source_id=item_id,
        is_premium=is_premium,
    )


def make_result(items, total=None, page=1, limit=20, has_more=False, provider="unsplash"):
    """构造测试用检索结果"""
    return SearchResult(
        items=tuple(items),
        total=len(items) if total is None else total,
        page=page,
        limit=limit,
        has_more=has_more,
        providers=(provider,),
    )


# ==================== Fixtures ====================

@pytest.fixture
def response_factory():
    return make_response


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def result_factory():
    return make_result


@pytest.fixture
def validator():
    """响应验证器"""
    return ResponseValidator()


@pytest.fixture
def mock_session():
    """模拟 HTTP 会话（默认返回空响应）"""
    session = Mock()
    session.get.return_value = make_response(text="")
    return session


@pytest.fixture
def unsplash_photo():
    """模拟 Unsplash 图片条目"""
    return {
        "id": "abc123",
        "width": 4000,
        "height": 3000,
        "color": "#26262a",
        "blur_hash": "LEHV6nWB2yk8",
        "description": "Mountain lake at sunrise",
        "alt_description": "snowy mountain near lake",
        "likes": 42,
        "created_at": "2024-01-01T00:00:00Z",
        "urls": {
            "raw": "https://images.unsplash.com/photo-abc123?ixid=raw",
            "full": "https://images.unsplash.com/photo-abc123?q=85",
            "regular": "https://images.unsplash.com/photo-abc123?w=1080",
            "small": "https://images.unsplash.com/photo-abc123?w=400",
            "thumb": "https://images.unsplash.com/photo-abc123?w=200",
        },
        "links": {
            "html": "https://unsplash.com/photos/abc123",
            "download": "https://unsplash.com/photos/abc123/download",
            "download_location": "https://api.unsplash.com/photos/abc123/download",
        },
        "user": {"name": "Jane Doe", "username": "janedoe"},
        "tags": [{"title": "Nature"}, {"title": "lake"}],
    }


@pytest.fixture
def unsplash_payload(unsplash_photo):
    """模拟 Unsplash 检索响应"""
    return {"total": 120, "total_pages": 6, "results": [unsplash_photo]}


@pytest.fixture
def pexels_video():
    """模拟 Pexels 视频条目"""
    return {
        "id": 2499611,
        "width": 1920,
        "height": 1080,
        "duration": 22,
        "url": "https://www.pexels.com/video/ocean-waves-at-sunset-2499611/",
        "image": "https://images.pexels.com/videos/2499611/free-video-2499611.jpg",
        "user": {"name": "John Smith", "url": "https://www.pexels.com/@john"},
        "video_files": [
            {
                "id": 1,
                "quality": "sd",
                "file_type": "video/mp4",
                "width": 640,
                "height": 360,
                "fps": 25,
                "link": "https://videos.pexels.com/video-files/2499611/sd.mp4",
            },
            {
                "id": 2,
                "quality": "hd",
                "file_type": "video/mp4",
                "width": 1920,
                "height": 1080,
                "fps": 29.97,
                "link": "https://videos.pexels.com/video-files/2499611/hd.mp4",
            },
        ],
        "video_pictures": [
            {"id": 1, "picture": "https://images.pexels.com/videos/2499611/pictures/preview-0.jpg"},
        ],
    }


@pytest.fixture
def pexels_payload(pexels_video):
    """模拟 Pexels 检索响应"""
    return {
        "page": 1,
        "per_page": 15,
        "total_results": 300,
        "next_page": "https://api.pexels.com/v1/videos/search?page=2",
        "videos": [pexels_video],
    }


@pytest.fixture
def iconfinder_icon():
    """模拟 Iconfinder 图标条目"""
    return {
        "icon_id": 1234,
        "type": "vector",
        "is_premium": False,
        "published_at": "2020-05-01T00:00:00",
        "categories": [{"name": "Arrows", "identifier": "arrows"}],
        "styles": [{"name": "Outline", "identifier": "outline"}],
        "tags": ["arrow", "right", "direction"],
        "licenses": [{"name": "Free for commercial use"}],
        "raster_sizes": [
            {
                "size": 64,
                "formats": [{
                    "format": "png",
                    "preview_url": "https://cdn4.iconfinder.com/data/icons/arrow-64.png",
                    "download_url": "https://api.iconfinder.com/v4/icons/1234/formats/png/64/download",
                }],
            },
            {
                "size": 128,
                "formats": [{
                    "format": "png",
                    "preview_url": "https://cdn4.iconfinder.com/data/icons/arrow-128.png",
                    "download_url": "https://api.iconfinder.com/v4/icons/1234/formats/png/128/download",
                }],
            },
        ],
        "vector_sizes": [
            {
                "size": 512,
                "formats": [{
                    "format": "svg",
                    "download_url": "https://api.iconfinder.com/v4/icons/1234/formats/svg/512/download",
                }],
            },
        ],
    }


@pytest.fixture
def iconfinder_payload(iconfinder_icon):
    """模拟 Iconfinder 检索响应"""
    return {"total_count": 250, "icons": [iconfinder_icon]}


@pytest.fixture
def shape_index():
    """模拟形状主索引"""
    return {
        "total_files": 4,
        "categories": ["basic", "arrows", "mostlyused"],
        "items": [
            {
                "original_filename": "Circle.svg",
                "normalized_filename": "circle.svg",
                "category": "basic",
                "path": "basic/circle.svg",
                "file_size": 400,
                "keywords": ["circle", "round"],
                "shape_category": "geometric",
            },
            {
                "original_filename": "Arrow Right.svg",
                "normalized_filename": "arrow-right.svg",
                "category": "arrows",
                "path": "arrows/arrow-right.svg",
                "file_size": 800,
                "keywords": ["arrow", "right"],
                "shape_category": "directional",
                "description": "Right pointing arrow",
            },
            {
                "original_filename": "Star.svg",
                "normalized_filename": "star.svg",
                "category": "mostlyused",
                "path": "mostlyused/star.svg",
                "file_size": 600,
                "keywords": ["star"],
            },
            {
                "original_filename": "Broken.svg",
                "category": "basic",
            },
        ],
    }


@pytest.fixture
def shape_catalog(shape_index):
    """内存形状库"""
    return InMemoryShapeCatalog.from_index(shape_index)


@pytest.fixture
def unsplash_adapter(mock_session, validator):
    return UnsplashAdapter("unsplash-key", validator=validator, session=mock_session, public_base_url=PUBLIC_BASE_URL)


@pytest.fixture
def pexels_adapter(mock_session, validator):
    return PexelsAdapter("pexels-key", validator=validator, session=mock_session, public_base_url=PUBLIC_BASE_URL)


@pytest.fixture
def iconfinder_adapter(mock_session, validator):
    return IconfinderAdapter("iconfinder-key", validator=validator, session=mock_session, public_base_url=PUBLIC_BASE_URL)


@pytest.fixture
def shape_adapter(shape_catalog, validator):
    return ShapeAdapter(shape_catalog, validator=validator, public_base_url=PUBLIC_BASE_URL)


@pytest.fixture
def fixed_clock():
    """固定时间：一年中的第 10 天 13 点"""
    return lambda: datetime(2024, 1, 10, 13, 30)


@pytest.fixture
def seeded_rng():
    return random.Random(7)
