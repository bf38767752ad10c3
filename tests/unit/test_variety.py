"""
检索结果多样化策略测试
"""

from unittest.mock import Mock

from stockmedia.adapters.variety import (
    GENERIC_TERMS,
    RELATED_TERMS,
    NoVarietyPolicy,
    TimeSeededVarietyPolicy,
)


def make_rng(random_value, pick_first=True):
    rng = Mock()
    rng.random.return_value = random_value
    rng.choice.side_effect = lambda seq: seq[0] if pick_first else seq[-1]
    return rng


class TestNoVarietyPolicy:

    def test_is_identity(self):
        policy = NoVarietyPolicy()
        items = [1, 2, 3, 4, 5]

        assert policy.expand_query("nature", {}) == "nature"
        assert policy.reorder(items, "nature", {}) == items


class TestTimeSeededVarietyPolicy:
    """时间种子多样化策略测试"""

    def test_time_seed(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(clock=fixed_clock)
        # 1 月 10 日是一年中的第 10 天
        assert policy.time_seed() == 10 * 24 + 13

    def test_is_generic(self):
        policy = TimeSeededVarietyPolicy()
        assert policy.is_generic("nature")
        assert policy.is_generic("red car")
        assert policy.is_generic("business people shaking hands")
        assert not policy.is_generic("old red car on a rainy street")
        assert not policy.is_generic("   ")

    def test_expand_query_with_related_term(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.1), clock=fixed_clock)
        assert policy.expand_query("nature", {}) == f"nature {RELATED_TERMS['nature'][0]}"

    def test_expand_query_uses_generic_terms_for_unknown_words(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.1), clock=fixed_clock)
        assert policy.expand_query("dog", {}) == f"dog {GENERIC_TERMS[0]}"

    def test_expand_query_probability_not_met(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.5), clock=fixed_clock)
        assert policy.expand_query("nature", {}) == "nature"

    def test_expand_query_skips_specific_queries(self, fixed_clock):
        rng = make_rng(0.0)
        policy = TimeSeededVarietyPolicy(rng=rng, clock=fixed_clock)

        assert policy.expand_query("old red car on a rainy street", {}) == "old red car on a rainy street"
        rng.random.assert_not_called()

    def test_expand_query_avoids_duplicate_term(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.1), clock=fixed_clock)
        first_term = RELATED_TERMS["nature"][0]
        assert policy.expand_query(f"nature {first_term}", {}) == f"nature {first_term}"

    def test_reorder_keeps_head(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.9), clock=fixed_clock)
        items = list(range(20))

        reordered = policy.reorder(items, "nature", {})

        assert reordered[:3] == [0, 1, 2]
        assert sorted(reordered) == items

    def test_reorder_is_stable_within_same_hour(self, fixed_clock):
        items = list(range(20))
        first = TimeSeededVarietyPolicy(rng=make_rng(0.9), clock=fixed_clock).reorder(items, "nature", {})
        second = TimeSeededVarietyPolicy(rng=make_rng(0.9), clock=fixed_clock).reorder(items, "Nature ", {})

        assert first == second

    def test_reorder_with_filters_and_no_shuffle(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.9), clock=fixed_clock)
        items = list(range(10))

        assert policy.reorder(items, "nature", {"orientation": "landscape"}) == items

    def test_reorder_probability_shuffle_with_filters(self, fixed_clock):
        rng = make_rng(0.1)
        policy = TimeSeededVarietyPolicy(rng=rng, clock=fixed_clock)
        items = list(range(10))

        reordered = policy.reorder(items, "nature", {"orientation": "landscape"})

        rng.shuffle.assert_called_once_with([3, 4, 5, 6, 7, 8, 9])
        assert reordered[:3] == [0, 1, 2]

    def test_reorder_short_list_unchanged(self, fixed_clock):
        policy = TimeSeededVarietyPolicy(rng=make_rng(0.0), clock=fixed_clock)
        assert policy.reorder([1, 2, 3, 4], "nature", {}) == [1, 2, 3, 4]
