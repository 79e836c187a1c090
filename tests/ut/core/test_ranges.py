"""npm 版本范围匹配测试"""

from __future__ import annotations

import pytest

from depflow.core.install.ranges import is_dist_tag, max_satisfying, parse_range, satisfies

VERSIONS = ["0.0.3", "0.0.4", "0.2.3", "0.2.9", "0.3.0", "1.0.0", "1.2.0", "1.2.7",
            "1.3.0", "2.0.0", "2.3.4", "2.4.0"]


class TestDistTag:
    @pytest.mark.parametrize("rng", ["latest", "next", "beta", "canary-2"])
    def test_tags(self, rng: str) -> None:
        assert is_dist_tag(rng)

    @pytest.mark.parametrize("rng", ["1.2.3", "v1.2.3", "^1.0.0", "*", "x", ">=1", ""])
    def test_not_tags(self, rng: str) -> None:
        assert not is_dist_tag(rng)


class TestMaxSatisfying:
    @pytest.mark.parametrize("rng, expected", [
        ("1.2.0", "1.2.0"),
        ("=1.2.0", "1.2.0"),
        ("v1.2.0", "1.2.0"),
        ("^1.0.0", "1.3.0"),
        ("^0.2.3", "0.2.9"),
        ("^0.0.3", "0.0.3"),
        ("~1.2.0", "1.2.7"),
        ("~1", "1.3.0"),
        ("1.x", "1.3.0"),
        ("1.2.*", "1.2.7"),
        ("*", "2.4.0"),
        ("", "2.4.0"),
        (">=1.2.0 <2.0.0", "1.3.0"),
        ("> 1.2 <=2.3.4", "2.3.4"),
        ("<1", "0.3.0"),
        ("1.0.0 - 2.3.4", "2.3.4"),
        ("^0.2.0 || ^1.2.0", "1.3.0"),
    ])
    def test_ranges(self, rng: str, expected: str) -> None:
        assert max_satisfying(VERSIONS, rng) == expected

    def test_no_match(self) -> None:
        assert max_satisfying(VERSIONS, "^5.0.0") is None

    def test_prerelease_excluded_by_default(self) -> None:
        assert max_satisfying([*VERSIONS, "3.0.0-beta.1"], ">=2.0.0") == "2.4.0"

    def test_prerelease_inside_caret_excluded(self) -> None:
        assert max_satisfying(["1.0.0", "1.4.0", "1.5.0-beta.1"], "^1.0.0") == "1.4.0"
        assert not satisfies("1.5.0-beta.1", "^1.0.0")
        assert not satisfies("2.0.0-rc.1", "*")

    def test_prerelease_named_in_range(self) -> None:
        assert max_satisfying(["1.0.0", "1.1.0-beta.2"], "^1.1.0-beta.1") == "1.1.0-beta.2"
        assert satisfies("1.1.0-beta.2", "^1.1.0-beta.1")
        # 只有写了预发布版本的分支放行预发布
        assert not satisfies("2.5.0-beta.1", "^1.1.0-beta.1 || ^2.0.0")

    @pytest.mark.parametrize("raw", ["1.0.0-1", "1.0.0-r1", "1.0.0-post2", "1.0.0-rev.3"])
    def test_numeric_prerelease_never_outranks_release(self, raw: str) -> None:
        assert max_satisfying(["1.0.0", raw], "^1.0.0") == "1.0.0"
        assert max_satisfying([raw], "*") is None
        assert not satisfies(raw, "^1.0.0")

    def test_unparseable_versions_ignored(self) -> None:
        assert max_satisfying(["not-a-version", "1.0.0"], "*") == "1.0.0"


class TestParseRange:
    def test_alternatives(self) -> None:
        assert len(parse_range("^1.0.0 || ^2.0.0")) == 2

    @pytest.mark.parametrize("rng", [
        "git+https://github.com/a/b.git",
        "file:../local",
        "user/repo",
        "latest",
        "1.2.3.4",
    ])
    def test_invalid(self, rng: str) -> None:
        with pytest.raises(ValueError):
            parse_range(rng)

    def test_satisfies(self) -> None:
        assert satisfies("1.2.7", "~1.2.0")
        assert not satisfies("1.3.0", "~1.2.0")
        assert not satisfies("garbage", "*")
