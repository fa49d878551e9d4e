"""Response Normalizer -- 修复生成文本中已知的 JSON 转义缺陷

按固定顺序执行三步修复：
1. 去掉错误的单引号转义  \\'  ->  '
2. 转义未跟随合法转义字符的反斜杠  \\x  ->  \\\\x
3. 转义字符串内部本应转义却未转义的双引号

每一步都按"反斜杠 + 下一个字符"成对扫描，与 JSON 词法保持一致，
因此对合法 JSON 不做任何改动，且重复执行结果不变。
"""

import string

import structlog

log = structlog.get_logger()

# JSON 合法转义字符（\u 另需 4 位十六进制）
_SIMPLE_ESCAPES = frozenset('"\\/bfnrt')
_HEX_DIGITS = frozenset(string.hexdigits)

# 字符串结束引号之后允许出现的首个非空白字符
_CLOSING_FOLLOWERS = frozenset(",:}]")
_WHITESPACE = frozenset(" \t\r\n")


def _is_unicode_escape(text: str, index: int) -> bool:
    """text[index] 为 'u' 时，判断其后是否紧跟 4 位十六进制"""
    digits = text[index + 1 : index + 5]
    return len(digits) == 4 and all(c in _HEX_DIGITS for c in digits)


def unescape_single_quotes(text: str) -> str:
    """第 1 步：\\' -> '"""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 1 < n:
            nxt = text[i + 1]
            if nxt == "'":
                out.append("'")
            else:
                out.append(ch + nxt)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def escape_stray_backslashes(text: str) -> str:
    """第 2 步：孤立反斜杠 -> 转义反斜杠"""
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch != "\\":
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1] if i + 1 < n else ""
        if nxt in _SIMPLE_ESCAPES or (nxt == "u" and _is_unicode_escape(text, i + 1)):
            out.append(ch + nxt)
            i += 2
        else:
            out.append("\\\\")
            i += 1
    return "".join(out)


def _next_significant(text: str, index: int) -> str:
    """返回 index 之后第一个非空白字符，到达末尾时返回空串"""
    n = len(text)
    while index < n and text[index] in _WHITESPACE:
        index += 1
    return text[index] if index < n else ""


def escape_interior_quotes(text: str) -> str:
    """第 3 步：转义字符串内部的裸双引号

    字符串内遇到的双引号，只有当其后（跳过空白）是 , : } ] 或文本末尾时
    才视为结束引号，否则视为内容中的引号并补上转义。
    """
    out: list[str] = []
    in_string = False
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == "\\" and i + 1 < n:
            out.append(text[i : i + 2])
            i += 2
            continue
        if ch == '"':
            if not in_string:
                in_string = True
                out.append(ch)
            else:
                follower = _next_significant(text, i + 1)
                if follower == "" or follower in _CLOSING_FOLLOWERS:
                    in_string = False
                    out.append(ch)
                else:
                    out.append('\\"')
            i += 1
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def normalize_response(text: str) -> str:
    """按固定顺序执行三步修复

    纯函数：确定性、幂等，对合法 JSON 为恒等变换。
    """
    fixed = escape_interior_quotes(escape_stray_backslashes(unescape_single_quotes(text)))
    if fixed != text:
        log.debug("response_escaping_fixed", original_length=len(text), fixed_length=len(fixed))
    return fixed
