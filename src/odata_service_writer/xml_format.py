"""Token-based XML pretty printing for local metadata copies."""

import re

_TOKEN = re.compile(
    r"<!--.*?-->"
    r"|<!\[CDATA\[.*?\]\]>"
    r"|<\?.*?\?>"
    r"|<![^>]*>"
    r"|<(?:[^>\"']|\"[^\"]*\"|'[^']*')*>"
    r"|[^<]+",
    re.DOTALL,
)


def prettify_xml(xml: str, indent: int = 4) -> str:
    """
    Put every tag on its own line and indent by nesting depth.

    Comments and processing instructions are kept whole and do not change
    the depth. Text and CDATA sections stay on the line of the element
    that contains them, so <Summary>text</Summary> is left as one line.
    Text that is not split into several tags, e.g. a single element, is
    returned unchanged apart from surrounding whitespace.
    """
    depth = 0
    result = []
    inline = False
    for token in _TOKEN.findall(xml.strip()):
        if not token.startswith("<") or token.startswith("<![CDATA["):
            if not token.strip():
                continue
            if result:
                result[-1] += token
            else:
                result.append(token)
            inline = True
        elif token.startswith("</"):
            depth = max(depth - 1, 0)
            if inline:
                result[-1] += token
                inline = False
            else:
                result.append(" " * (indent * depth) + token)
        else:
            inline = False
            result.append(" " * (indent * depth) + token)
            if not token.startswith(("<!", "<?")) and not token.endswith("/>"):
                depth += 1
    return "\n".join(result)
