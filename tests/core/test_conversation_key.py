"""会话 key 推导测试

测试内容：
1. 对称性与规范格式
2. 不同参与者对不会碰撞
3. 非法 id / key 被拒绝
4. 成员关系按拆分后的参与者精确匹配（u1 与 u10）
"""

import pytest
from chatline.core.exceptions import InvalidArgumentError
from chatline.core.models import (
    decompose_key,
    derive_key,
    is_participant,
    other_participant,
)


class TestDeriveKey:
    @pytest.mark.parametrize(
        "a,b",
        [("alice", "bob"), ("u1", "u10"), ("Z", "a"), ("same-prefix", "same")],
    )
    def test_symmetric(self, a: str, b: str):
        assert derive_key(a, b) == derive_key(b, a)

    def test_canonical_format(self):
        assert derive_key("bob", "alice") == "dm:alice:bob"

    def test_distinct_pairs_do_not_collide(self):
        ids = ["u1", "u10", "u100", "u1_0", "a", "ab", "b"]
        pairs = {(a, b) for a in ids for b in ids if a < b}
        keys = {derive_key(a, b) for a, b in pairs}
        assert len(keys) == len(pairs)

    def test_round_trip(self):
        assert decompose_key(derive_key("u10", "u1")) == ("u1", "u10")

    @pytest.mark.parametrize("bad", ["", "   "])
    def test_empty_id_rejected(self, bad: str):
        with pytest.raises(InvalidArgumentError):
            derive_key(bad, "bob")

    def test_separator_in_id_rejected(self):
        with pytest.raises(InvalidArgumentError):
            derive_key("alice:evil", "bob")


class TestDecomposeKey:
    @pytest.mark.parametrize(
        "key",
        ["", "dm:alice", "alice:bob", "dm:alice:bob:carol", "dm::bob", "dm:bob:alice"],
    )
    def test_malformed_key_rejected(self, key: str):
        with pytest.raises(InvalidArgumentError):
            decompose_key(key)


class TestMembership:
    def test_prefix_id_is_not_participant(self):
        """u1 不是 u10 与 u100 之间会话的参与者"""
        key = derive_key("u10", "u100")
        assert not is_participant(key, "u1")
        assert is_participant(key, "u10")
        assert is_participant(key, "u100")

    def test_malformed_key_is_not_membership(self):
        assert not is_participant("dm:u1", "u1")

    def test_other_participant(self):
        key = derive_key("alice", "bob")
        assert other_participant(key, "alice") == "bob"
        assert other_participant(key, "bob") == "alice"

    def test_other_participant_for_outsider(self):
        with pytest.raises(InvalidArgumentError):
            other_participant(derive_key("alice", "bob"), "carol")
