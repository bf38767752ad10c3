"""
检索结果多样化策略

对重复的通用检索做适度扰动，避免每次返回相同的头部结果：
- 时间种子：一年中的第几天 × 24 + 小时
- 无过滤条件的检索：保留前几条，其余按种子重排
- 短查询或通用查询：按概率追加一个相关词
- 按概率打乱除前几条以外的结果

测试时使用 NoVarietyPolicy，或注入固定的 rng / clock。
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, TypeVar
import random


T = TypeVar("T")


RELATED_TERMS: Dict[str, List[str]] = {
    "business": ["office", "meeting", "teamwork", "startup"],
    "technology": ["computer", "digital", "innovation", "code"],
    "nature": ["forest", "mountain", "landscape", "flowers"],
    "people": ["portrait", "lifestyle", "friends", "smile"],
    "abstract": ["texture", "gradient", "pattern", "colorful"],
    "background": ["texture", "wallpaper", "minimal", "gradient"],
    "food": ["healthy", "restaurant", "cooking", "fresh"],
    "travel": ["adventure", "city", "beach", "road"],
    "city": ["architecture", "street", "skyline", "urban"],
    "sunset": ["golden hour", "sky", "ocean", "silhouette"],
}

GENERIC_TERMS = ["aesthetic", "modern", "creative", "minimal", "vibrant"]


class VarietyPolicy(ABC):
    """多样化策略接口"""

    @abstractmethod
    def expand_query(self, query: str, filters: Dict[str, Any]) -> str:
        """可能追加相关词后的查询"""
        pass

    @abstractmethod
    def reorder(self, items: List[T], query: str, filters: Dict[str, Any]) -> List[T]:
        """可能重排后的结果"""
        pass


class NoVarietyPolicy(VarietyPolicy):
    """不做任何扰动"""

    def expand_query(self, query: str, filters: Dict[str, Any]) -> str:
        return query

    def reorder(self, items: List[T], query: str, filters: Dict[str, Any]) -> List[T]:
        return list(items)


class TimeSeededVarietyPolicy(VarietyPolicy):
    """
    基于时间种子的多样化策略

    同一小时内相同的查询得到相同的排序，跨小时后排序变化。
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
        expansion_probability: float = 0.3,
        shuffle_probability: float = 0.2,
        keep_top: int = 3,
        short_query_length: int = 2
    ):
        """
        Args:
            rng: 概率判断用的随机数生成器
            clock: 当前时间来源
            expansion_probability: 追加相关词的概率
            shuffle_probability: 打乱结果的概率
            keep_top: 重排时保留位置的头部条目数
            short_query_length: 不超过该词数的查询视为短查询
        """
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.expansion_probability = expansion_probability
        self.shuffle_probability = shuffle_probability
        self.keep_top = keep_top
        self.short_query_length = short_query_length

    def time_seed(self) -> int:
        """一年中的第几天 × 24 + 小时"""
        now = self.clock()
        return now.timetuple().tm_yday * 24 + now.hour

    def is_generic(self, query: str) -> bool:
        words = query.strip().lower().split()
        if not words:
            return False
        return len(words) <= self.short_query_length or words[0] in RELATED_TERMS

    def expand_query(self, query: str, filters: Dict[str, Any]) -> str:
        if not self.is_generic(query):
            return query
        if self.rng.random() >= self.expansion_probability:
            return query

        key = query.strip().lower().split()[0]
        candidates = RELATED_TERMS.get(key, GENERIC_TERMS)
        term = self.rng.choice(candidates)
        if term in query.lower():
            return query
        return f"{query.strip()} {term}"

    def reorder(self, items: List[T], query: str, filters: Dict[str, Any]) -> List[T]:
        items = list(items)
        if len(items) <= self.keep_top + 1:
            return items

        head, tail = items[:self.keep_top], items[self.keep_top:]

        # 无过滤条件时按时间种子重排尾部
        if not any(filters.values()):
            seed = f"{self.time_seed()}:{query.strip().lower()}"
            random.Random(seed).shuffle(tail)

        if self.rng.random() < self.shuffle_probability:
            self.rng.shuffle(tail)

        return head + tail
