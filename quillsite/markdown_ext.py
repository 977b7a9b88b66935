from __future__ import annotations

import xml.etree.ElementTree as etree

from markdown.extensions import Extension
from markdown.inlinepatterns import InlineProcessor, SimpleTagInlineProcessor

RE_STRIKETHROUGH = r"(~{2})(?!~)(.+?)(?<!~)~{2}"
RE_SUPERSCRIPT = r"\^(?:\((?P<group>[^)\n]+)\)|(?P<word>[^\s^()]+))"


class SuperscriptProcessor(InlineProcessor):
    def handleMatch(self, m, data):
        text = m.group("group") if m.group("group") is not None else m.group("word")
        el = etree.Element("sup")
        el.text = text
        return el, m.start(0), m.end(0)


class StrikeSuperExtension(Extension):
    """``~~deleted~~`` becomes ``<del>``, ``^word`` and ``^(a few words)`` become ``<sup>``."""

    def extendMarkdown(self, md):
        # above emphasis (60) so "~~**x**~~" keeps its inner strong
        md.inlinePatterns.register(SimpleTagInlineProcessor(RE_STRIKETHROUGH, "del"), "strikethrough", 65)
        md.inlinePatterns.register(SuperscriptProcessor(RE_SUPERSCRIPT, md), "superscript", 64)
        # "*" needs a non-word character on each side, the same as "_"
        md.delimiters.add("*", "strong,em", smart=True)
