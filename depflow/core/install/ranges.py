"""npm 版本范围匹配

把 npm 风格的版本范围翻译成 packaging.specifiers.SpecifierSet，
再从候选版本中挑出满足范围的最高版本。

支持的语法:
  - 精确版本:   1.2.3  =1.2.3  v1.2.3
  - 比较符:     >=1.2.0 <2.0.0   >1.2   <=1.x
  - 插入符:     ^1.2.3  ^0.2.3  ^0.0.3
  - 波浪号:     ~1.2.3  ~1.2  ~1
  - X 范围:     1.x  1.2.*  *  ""
  - 连字符:     1.0.0 - 2.3.4
  - 多选:       ^1.0.0 || ^2.0.0

packaging 无法解析的版本号（非 PEP 440 兼容的预发布标签等）直接忽略；
预发布版本只匹配显式写了预发布版本的比较符分支。
"""

from __future__ import annotations

import re
from typing import Iterable

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

_WILDCARDS = frozenset(("x", "X", "*"))
_OP_RE = re.compile(r"^(>=|<=|>|<|=|\^|~>?)?\s*(.*)$")
_HYPHEN_RE = re.compile(r"^\s*(\S+)\s+-\s+(\S+)\s*$")
_TAG_RE = re.compile(r"^[A-Za-z][\w.\-]*$")
_VERSIONISH_RE = re.compile(r"^v?\d")

Partial = tuple[int | None, int | None, int | None, str]


def is_dist_tag(rng: str) -> bool:
    """范围是否为 dist-tag（latest / next / beta ...）"""
    rng = rng.strip()
    if rng in _WILDCARDS or _VERSIONISH_RE.match(rng):
        return False
    return bool(_TAG_RE.match(rng))


def _parse_partial(text: str) -> Partial:
    """解析可能不完整的版本号，缺失或通配的位用 None 表示"""
    text = text.strip().lstrip("=v").strip()
    text = text.split("+", 1)[0]
    main, _, pre = text.partition("-")
    parts = main.split(".") if main else []
    if len(parts) > 3:
        raise ValueError(f"无效的版本号: {text}")
    nums: list[int | None] = []
    for part in parts:
        if part in _WILDCARDS or part == "":
            nums.append(None)
        elif part.isdigit():
            nums.append(int(part))
        else:
            raise ValueError(f"无效的版本号: {text}")
    # 通配位之后的位一律视为通配
    if None in nums:
        nums = nums[: nums.index(None)]
    while len(nums) < 3:
        nums.append(None)
    return nums[0], nums[1], nums[2], pre


def _fmt(major: int, minor: int, patch: int, pre: str = "") -> str:
    return f"{major}.{minor}.{patch}" + (f"-{pre}" if pre else "")


def _caret(p: Partial) -> list[str]:
    major, minor, patch, pre = p
    if major is None:
        return []
    lower = _fmt(major, minor or 0, patch or 0, pre)
    if major > 0 or minor is None:
        upper = _fmt(major + 1, 0, 0)
    elif minor > 0 or patch is None:
        upper = _fmt(0, minor + 1, 0)
    else:
        upper = _fmt(0, 0, patch + 1)
    return [f">={lower}", f"<{upper}"]


def _tilde(p: Partial) -> list[str]:
    major, minor, patch, pre = p
    if major is None:
        return []
    lower = _fmt(major, minor or 0, patch or 0, pre)
    if minor is None:
        return [f">={lower}", f"<{_fmt(major + 1, 0, 0)}"]
    return [f">={lower}", f"<{_fmt(major, minor + 1, 0)}"]


def _xrange(p: Partial) -> list[str]:
    major, minor, patch, pre = p
    if major is None:
        return []
    if minor is None:
        return [f">={_fmt(major, 0, 0)}", f"<{_fmt(major + 1, 0, 0)}"]
    if patch is None:
        return [f">={_fmt(major, minor, 0)}", f"<{_fmt(major, minor + 1, 0)}"]
    return [f"=={_fmt(major, minor, patch, pre)}"]


def _compare(op: str, p: Partial) -> list[str]:
    major, minor, patch, pre = p
    if major is None:
        # ">=*" 之类等价于任意版本，"<*" 不可满足
        return [] if op in (">=", "<=") else ["<0.0.0"]
    full = minor is not None and patch is not None
    if full:
        return [f"{op}{_fmt(major, minor, patch, pre)}"]
    # 不完整版本: 按 npm 语义向上 / 向下取整
    if minor is None:
        floor, ceil = _fmt(major, 0, 0), _fmt(major + 1, 0, 0)
    else:
        floor, ceil = _fmt(major, minor, 0), _fmt(major, minor + 1, 0)
    return {
        ">=": [f">={floor}"],
        "<": [f"<{floor}"],
        ">": [f">={ceil}"],
        "<=": [f"<{ceil}"],
    }[op]


def _comparator(token: str) -> list[str]:
    m = _OP_RE.match(token)
    op, rest = (m.group(1) or ""), m.group(2)
    if op == "^":
        return _caret(_parse_partial(rest))
    if op in ("~", "~>"):
        return _tilde(_parse_partial(rest))
    if op in ("", "="):
        return _xrange(_parse_partial(rest))
    return _compare(op, _parse_partial(rest))


def _comparator_set(text: str) -> SpecifierSet:
    hyphen = _HYPHEN_RE.match(text)
    if hyphen:
        specs = _compare(">=", _parse_partial(hyphen.group(1)))
        specs += _compare("<=", _parse_partial(hyphen.group(2)))
    else:
        # "> 1.2" 之类运算符与版本间的空格先合并
        compact = re.sub(r"(>=|<=|>|<|=|\^|~>?)\s+", r"\1", text.strip())
        specs = []
        for token in compact.split():
            specs.extend(_comparator(token))
    try:
        return SpecifierSet(",".join(specs))
    except InvalidSpecifier as e:
        raise ValueError(f"无法解析的版本范围: {text}") from e


def parse_range(rng: str) -> list[SpecifierSet]:
    """把 npm 范围解析为若干 SpecifierSet（'||' 的每个分支一个）

    Raises:
        ValueError: 范围语法无效或不受支持（git / file / URL 等）
    """
    rng = (rng or "").strip()
    if ":" in rng or "/" in rng:
        raise ValueError(f"不支持的版本范围: {rng}")
    return [_comparator_set(alt) for alt in rng.split("||")]


def _names_prerelease(spec: SpecifierSet) -> bool:
    """分支中是否有比较符显式写了预发布版本"""
    for s in spec:
        try:
            if Version(s.version).is_prerelease:
                return True
        except InvalidVersion:
            continue
    return False


def parse_version(raw: str) -> Version | None:
    """解析注册表中的 npm 版本号，无法按 npm 语义比较的返回 None

    packaging 会把 1.0.0-1 / 1.0.0-r1 / 1.0.0-post1 读成 PEP 440 后发布版本，
    排序在 1.0.0 之上；npm 中它们是预发布版本，排在 1.0.0 之下。
    两者无法一致，这类版本直接忽略。
    """
    try:
        v = Version(raw)
    except InvalidVersion:
        return None
    if v.is_postrelease:
        return None
    return v


def _matches(v: Version, alternatives: list[SpecifierSet]) -> bool:
    # 预发布版本只匹配显式写了预发布版本的分支
    return any(
        spec.contains(v, prereleases=_names_prerelease(spec)) for spec in alternatives
    )


def satisfies(version: str, rng: str) -> bool:
    v = parse_version(version)
    if v is None:
        return False
    return _matches(v, parse_range(rng))


def max_satisfying(versions: Iterable[str], rng: str) -> str | None:
    """返回满足范围的最高版本，没有则返回 None"""
    alternatives = parse_range(rng)
    best: tuple[Version, str] | None = None
    for raw in versions:
        v = parse_version(raw)
        if v is None or not _matches(v, alternatives):
            continue
        if best is None or v > best[0]:
            best = (v, raw)
    return best[1] if best else None
