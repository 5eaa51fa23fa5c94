"""
HTML Script Locator — finds JavaScript inside HTML without parsing HTML.

A single-pass character state machine, tolerant of malformed markup, that
reports:
  • inline ``<script>`` bodies whose ``type`` is JavaScript/ECMAScript
  • external scripts (``<script src=...>``) — location of the URL only
  • inline event handlers (attributes whose name starts with ``on``)
  • ``<a href="javascript:...">`` URLs

``<style>`` bodies are skipped, and comments / CDATA sections suppress tag
recognition until their terminator. All ranges are absolute character
offsets into the HTML text.
"""

import logging
import re
from typing import List, Optional

from jsrename.models import Fragment, Span

logger = logging.getLogger(__name__)

# Lexer states
INIT = 0
OPEN_TAG = 1
INSIDE_TAG_NAME = 2
BETWEEN_ATTRIBUTES = 3
INSIDE_ATTR_NAME = 4
BEFORE_ATTR_VALUE = 5
INSIDE_ATTR_VALUE = 6
INSIDE_QUOTED_ATTR_VALUE = 7
INSIDE_SCRIPT_TAG = 8
INSIDE_STYLE_TAG = 9
INSIDE_COMMENT = 10
INSIDE_CDATA = 11

_WHITESPACE = frozenset(" \r\n\t\v")
_NOT_TAG_CHARS = _WHITESPACE | {"/", ">"}

_JAVASCRIPT_TYPE = re.compile(r"javascript", re.IGNORECASE)
_ECMASCRIPT_TYPE = re.compile(r"ecmascript", re.IGNORECASE)

JAVASCRIPT_URL_PREFIX = "javascript:"


def locate_scripts(html: str) -> List[Fragment]:
    """Return the JavaScript fragments of ``html`` in document order."""
    fragments = _HtmlScriptLexer(html).run()
    logger.debug("Located %d script fragment(s) in %d chars of HTML", len(fragments), len(html))
    return fragments


class _HtmlScriptLexer:

    def __init__(self, code: str):
        self.code = code
        self.n = len(code)
        self.state = INIT
        self.result: List[Fragment] = []

        self.is_close_tag = False
        self.is_self_closing_tag = False

        self.start_of_tag_name = -1
        self.end_of_tag_name = -1
        self.start_of_attr_name = -1
        self.end_of_attr_name = -1
        self.start_of_attr_value = -1
        self.end_of_attr_value = -1
        self.start_of_script_body = -1
        self.end_of_script_body = -1
        self.quote: Optional[str] = None

        self.is_script_tag = False
        self.script_is_javascript = True
        self.start_of_script_src = -1
        self.end_of_script_src = -1

    # ────────────────────────────────────────────────────────────────
    #  Character helpers
    # ────────────────────────────────────────────────────────────────

    def _char(self, i: int) -> Optional[str]:
        if 0 <= i < self.n:
            return self.code[i]
        return None

    def _is_tag_char(self, i: int) -> bool:
        ch = self._char(i)
        return ch is not None and ch not in _NOT_TAG_CHARS

    def _match(self, text: str, start: int, end: Optional[int] = None) -> bool:
        """Case-insensitive comparison of ``code[start:end]`` against ``text``."""
        if end is None:
            end = start + len(text)
        elif end - start != len(text):
            return False
        if start < 0 or end > self.n:
            return False
        return self.code[start:end].lower() == text

    def _skip_to(self, i: int, ch: str) -> int:
        j = self.code.find(ch, i)
        return self.n if j < 0 else j

    # ────────────────────────────────────────────────────────────────
    #  Main loop
    # ────────────────────────────────────────────────────────────────

    def run(self) -> List[Fragment]:
        code = self.code
        i = 0
        while i < self.n:
            c = code[i]
            state = self.state

            if state == INIT:
                i = self._skip_to(i, "<")
                if i < self.n:
                    self.state = OPEN_TAG
                    self.is_close_tag = False
                    self.is_self_closing_tag = False
                    self.start_of_attr_name = self.end_of_attr_name = -1

            elif state == OPEN_TAG:
                if c == "/":
                    self.is_close_tag = True
                elif c in _WHITESPACE:
                    pass
                elif c == ">":
                    self.state = INIT  # <>, </> and friends
                else:
                    self.start_of_tag_name = i
                    self.state = INSIDE_TAG_NAME

            elif state == INSIDE_TAG_NAME:
                if c in _WHITESPACE:
                    self.end_of_tag_name = i
                    self._on_finish_tag_name()
                    self.state = BETWEEN_ATTRIBUTES
                elif c == ">":
                    self.end_of_tag_name = i
                    self._on_finish_tag_name()
                    self._on_finish_tag(i)
                    self.state = self._enter_tag_body()
                elif c == "/":
                    self.end_of_tag_name = i
                    self._on_finish_tag_name()
                    self.is_self_closing_tag = True
                    self.state = BETWEEN_ATTRIBUTES
                elif c == "-":
                    if self._match("!-", self.start_of_tag_name, i):
                        self.state = INSIDE_COMMENT
                elif c == "[":
                    if self._match("![cdata", self.start_of_tag_name, i):
                        self.state = INSIDE_CDATA

            elif state == BETWEEN_ATTRIBUTES:
                # also used for whitespace between an attribute name and '='
                if c in _WHITESPACE:
                    pass
                elif c == ">":
                    self._on_finish_tag(i)
                    self.state = self._enter_tag_body()
                elif c == "/":
                    self.is_self_closing_tag = True
                elif c == "=":
                    if self.end_of_attr_name != -1:
                        self.state = BEFORE_ATTR_VALUE
                else:
                    self.start_of_attr_name = i
                    self.end_of_attr_name = -1
                    self.state = INSIDE_ATTR_NAME

            elif state == INSIDE_ATTR_NAME:
                if c in _WHITESPACE:
                    self.end_of_attr_name = i
                    self.state = BETWEEN_ATTRIBUTES
                elif c == ">":
                    # valueless attributes carry no script
                    self._on_finish_tag(i)
                    self.state = self._enter_tag_body()
                elif c == "/":
                    self.is_self_closing_tag = True
                    self.state = BETWEEN_ATTRIBUTES
                elif c == "=":
                    self.end_of_attr_name = i
                    self.state = BEFORE_ATTR_VALUE

            elif state == BEFORE_ATTR_VALUE:
                if c in _WHITESPACE or c == "=":
                    pass
                elif c == ">":
                    self._on_finish_tag(i)
                    self.state = self._enter_tag_body()
                elif c in ("\"", "'"):
                    self.quote = c
                    self.start_of_attr_value = i + 1
                    self.state = INSIDE_QUOTED_ATTR_VALUE
                else:
                    self.start_of_attr_value = i
                    self.state = INSIDE_ATTR_VALUE

            elif state == INSIDE_ATTR_VALUE:
                if c in _WHITESPACE:
                    self.end_of_attr_value = i
                    self._on_finish_attr()
                    self.state = BETWEEN_ATTRIBUTES
                elif c == ">":
                    if self._char(i - 1) == "/":
                        self.is_self_closing_tag = True
                        self.end_of_attr_value = i - 1
                    else:
                        self.end_of_attr_value = i
                    self._on_finish_attr()
                    self._on_finish_tag(i)
                    self.state = self._enter_tag_body()

            elif state == INSIDE_QUOTED_ATTR_VALUE:
                i = self._skip_to(i, self.quote)
                if i < self.n:
                    self.end_of_attr_value = i
                    self._on_finish_attr()
                    self.state = BETWEEN_ATTRIBUTES

            elif state == INSIDE_SCRIPT_TAG:
                i = self._skip_to(i, "<")
                if i < self.n and self._match("/script", i + 1) and not self._is_tag_char(i + 8):
                    self.end_of_script_body = i
                    self._on_finish_script()
                    i += 7
                    self.is_close_tag = True
                    self.state = INSIDE_TAG_NAME

            elif state == INSIDE_STYLE_TAG:
                i = self._skip_to(i, "<")
                if i < self.n and self._match("/style", i + 1) and not self._is_tag_char(i + 7):
                    i += 6
                    self.is_close_tag = True
                    self.state = INSIDE_TAG_NAME

            elif state == INSIDE_COMMENT:
                i = self._skip_to(i, ">")
                # "-->" only counts with content before it: <!--> and <!---> stay open
                if (i < self.n and i - self.start_of_tag_name > 4
                        and code[i - 1] == "-" and code[i - 2] == "-"):
                    self.state = INIT

            elif state == INSIDE_CDATA:
                i = self._skip_to(i, ">")
                if i < self.n and self._match("]]", i - 2):
                    self.state = INIT

            i += 1

        if self.state == INSIDE_SCRIPT_TAG:
            self.end_of_script_body = self.n
            self._on_finish_script()
        return self.result

    # ────────────────────────────────────────────────────────────────
    #  Tag events
    # ────────────────────────────────────────────────────────────────

    def _enter_tag_body(self) -> int:
        if self.is_script_tag:
            return INSIDE_SCRIPT_TAG
        if (self._match("style", self.start_of_tag_name, self.end_of_tag_name)
                and not self.is_close_tag and not self.is_self_closing_tag):
            return INSIDE_STYLE_TAG
        return INIT

    def _on_finish_tag_name(self):
        if self.is_close_tag:
            return
        self.is_script_tag = self._match("script", self.start_of_tag_name, self.end_of_tag_name)
        self.start_of_script_src = self.end_of_script_src = -1
        self.script_is_javascript = True

    def _on_finish_attr(self):
        if self.is_script_tag:
            if self._match("type", self.start_of_attr_name, self.end_of_attr_name):
                script_type = self.code[self.start_of_attr_value:self.end_of_attr_value]
                if not _JAVASCRIPT_TYPE.search(script_type) and not _ECMASCRIPT_TYPE.search(script_type):
                    self.script_is_javascript = False
            elif self._match("src", self.start_of_attr_name, self.end_of_attr_name):
                self.start_of_script_src = self.start_of_attr_value
                self.end_of_script_src = self.end_of_attr_value
        self._try_event_handler()
        self._try_href_javascript()
        self.end_of_attr_name = -1

    def _on_finish_tag(self, i: int):
        if self.is_script_tag:
            self.start_of_script_body = i + 1

    def _on_finish_script(self):
        self._try_script()
        self.is_script_tag = False

    # ────────────────────────────────────────────────────────────────
    #  Fragment output
    # ────────────────────────────────────────────────────────────────

    def _try_script(self):
        if not self.script_is_javascript:
            return
        if self.start_of_script_src != -1:
            self.result.append(Fragment(
                kind="extern",
                href=Span(start=self.start_of_script_src, end=self.end_of_script_src),
            ))
        else:
            self.result.append(Fragment(
                kind="script",
                code=Span(start=self.start_of_script_body, end=self.end_of_script_body),
            ))

    def _try_event_handler(self):
        start = self.start_of_attr_name
        if start < 0 or not self.code.startswith("on", start):
            return
        self.result.append(Fragment(
            kind="event",
            code=Span(start=self.start_of_attr_value, end=self.end_of_attr_value),
            attr=Span(start=start, end=self.end_of_attr_name),
            tag=Span(start=self.start_of_tag_name, end=self.end_of_tag_name),
        ))

    def _try_href_javascript(self):
        if not self._match("a", self.start_of_tag_name, self.end_of_tag_name):
            return
        if not self._match("href", self.start_of_attr_name, self.end_of_attr_name):
            return
        if not self._match(JAVASCRIPT_URL_PREFIX, self.start_of_attr_value):
            return
        self.result.append(Fragment(
            kind="href",
            code=Span(start=self.start_of_attr_value + len(JAVASCRIPT_URL_PREFIX),
                      end=self.end_of_attr_value),
        ))
